# storefront/repos/address_repo.py
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.address import AddressModel


class AddressRepo:
    def __init__(self, db: Session):
        self.db = db

    def list_for_user(self, user_id: int) -> list[AddressModel]:
        stmt = (
            select(AddressModel)
            .where(AddressModel.user_id == user_id)
            .order_by(AddressModel.is_default.desc(), AddressModel.type.asc(), AddressModel.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_by_type(self, user_id: int, address_type: str) -> list[AddressModel]:
        stmt = (
            select(AddressModel)
            .where(AddressModel.user_id == user_id, AddressModel.type == address_type)
            .order_by(AddressModel.is_default.desc(), AddressModel.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_defaults(self, user_id: int) -> list[AddressModel]:
        stmt = select(AddressModel).where(
            AddressModel.user_id == user_id,
            AddressModel.is_default.is_(True),
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_for_user(self, address_id: int, user_id: int) -> AddressModel | None:
        return self.db.execute(
            select(AddressModel).where(AddressModel.id == address_id, AddressModel.user_id == user_id)
        ).scalar_one_or_none()

    def get_many(self, address_ids: list[int]) -> dict[int, AddressModel]:
        if not address_ids:
            return {}
        rows = self.db.execute(select(AddressModel).where(AddressModel.id.in_(address_ids))).scalars().all()
        return {a.id: a for a in rows}

    def clear_defaults(self, user_id: int, address_type: str, exclude_id: int | None = None):
        conditions = [AddressModel.user_id == user_id, AddressModel.type == address_type]
        if exclude_id is not None:
            conditions.append(AddressModel.id != exclude_id)
        self.db.execute(
            update(AddressModel)
            .where(*conditions)
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )

    def add(self, address: AddressModel) -> AddressModel:
        self.db.add(address)
        self.db.flush()
        return address

    def delete(self, address: AddressModel):
        self.db.delete(address)
        self.db.flush()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

# storefront/data/models/address.py
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey

from storefront.data.database import Base


class AddressModel(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(String, nullable=False)  # shipping, billing
    full_name = Column(String, nullable=False)
    line1 = Column(String, nullable=False)
    line2 = Column(String, nullable=True)
    city = Column(String, nullable=False)
    city_id = Column(Integer, nullable=True)
    state = Column(String, nullable=False)
    state_id = Column(Integer, nullable=True)
    country = Column(String, nullable=False, default="Pakistan")
    country_code = Column(String(2), nullable=False, default="PK")
    country_id = Column(Integer, nullable=False, default=167)
    postal_code = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)

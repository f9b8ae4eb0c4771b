# backend/models/users.py
from sqlalchemy import Column, Integer, String
from database import Base

# Represents a customer account; credentials live with the auth provider
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)

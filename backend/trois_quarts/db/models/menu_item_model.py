# backend/trois_quarts/db/models/menu_item_model.py
"""
Este archivo contiene el modelo de plato de la carta.
"""

from sqlalchemy import Boolean, Column, Integer, Numeric, String, Text

from trois_quarts.db.database import Base


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    # Precio TTC
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String(100), nullable=True, index=True)
    is_available = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<MenuItem(id={self.id}, name='{self.name}', price={self.price})>"

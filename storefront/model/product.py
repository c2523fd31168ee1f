# storefront/model/product.py
from ..extensions import db
from sqlalchemy.sql import func

class Finish(db.Model):
    __tablename__ = "finish"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.String(512))

    def as_api(self):
        return {"id": self.id, "name": self.name, "description": self.description}


class Product(db.Model):
    __tablename__ = "product"
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, index=True)      # catalogue code, e.g. "GL-KN-001"
    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text)

    packaging_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    packaging_unit = db.Column(db.String(32), default="Set")

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    materials = db.relationship(
        "ProductMaterial",
        backref="product",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProductMaterial.id.asc()",
    )
    finishes = db.relationship(
        "ProductFinish",
        backref="product",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProductFinish.id.asc()",
    )

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "packaging_price": float(self.packaging_price or 0),
            "packaging_unit": self.packaging_unit,
            "materials": [m.as_api() for m in self.materials],
            "finishes": [f.as_api() for f in self.finishes],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class ProductMaterial(db.Model):
    __tablename__ = "product_material"
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    material_id = db.Column(db.String(64), nullable=True)          # material master reference, if any
    name = db.Column(db.String(120), nullable=False)
    base_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    size_options = db.relationship(
        "MaterialSizeOption",
        backref="material",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="MaterialSizeOption.id.asc()",
    )

    def as_api(self):
        return {
            "material_id": self.material_id,
            "name": self.name,
            "base_price": float(self.base_price or 0),
            "size_options": [s.as_api() for s in self.size_options],
        }


class MaterialSizeOption(db.Model):
    __tablename__ = "material_size_option"
    id = db.Column(db.Integer, primary_key=True)
    product_material_id = db.Column(db.Integer, db.ForeignKey("product_material.id"), nullable=False, index=True)
    name = db.Column(db.String(64))
    size_mm = db.Column(db.Integer, nullable=False)
    additional_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    def as_api(self):
        return {
            "name": self.name,
            "size_mm": self.size_mm,
            "additional_cost": float(self.additional_cost or 0),
        }


class ProductFinish(db.Model):
    __tablename__ = "product_finish"
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    finish_id = db.Column(db.Integer, db.ForeignKey("finish.id"), nullable=False, index=True)
    price_adjustment = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    finish = db.relationship("Finish", lazy="joined")

    def as_api(self):
        return {
            "finish_id": self.finish_id,
            "name": self.finish.name if self.finish else None,
            "price_adjustment": float(self.price_adjustment or 0),
        }

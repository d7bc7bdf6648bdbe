# salesdesk/models/product.py
from salesdesk.extensions import db
from salesdesk.timeutil import utcnow


class Product(db.Model):
    __tablename__ = "product"

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(20), unique=True, nullable=True, index=True)
    name = db.Column(db.String(150), nullable=False)
    # whole currency units, no subunits
    price = db.Column(db.Integer, nullable=False)
    cost = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(20), nullable=False, default="active")  # active | inactive

    description = db.Column(db.Text, nullable=True)
    introduction = db.Column(db.Text, nullable=True)
    features = db.Column(db.Text, nullable=True)
    specifications = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_dict(self, include_cost: bool = False) -> dict:
        data = {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "price": self.price,
            "status": self.status,
            "description": self.description,
            "introduction": self.introduction,
            "features": self.features,
            "specifications": self.specifications,
            "imageUrl": self.image_url,
        }
        if include_cost:
            data["cost"] = self.cost
        return data

    def __repr__(self) -> str:
        return f"<Product {self.name}>"

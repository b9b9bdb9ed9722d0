"""
Seed default categories and sample products (idempotent).

Run directly with ``python seed.py``; the same routine runs on startup when
SEED_ON_STARTUP is enabled.
"""
import logging
from typing import Dict

from config import Settings, setup_logging
from database import connect
from errors import AppError
from repositories import Services

logger = logging.getLogger(__name__)

SAMPLE_PRODUCTS = [
    {
        "name": "Classic Cotton Tee",
        "price": 2500.0,
        "description": "Soft everyday t-shirt in breathable cotton.",
        "category": "unisex",
        "subcategory": "t-shirts-shirts",
        "fabric": "100% cotton",
        "features": ["Regular fit", "Crew neck"],
        "colors": ["Black", "White"],
        "stock": {"S": 10, "M": 20, "L": 15, "XL": 5},
        "img": "/images/prod1.png",
        "rating": 4.5,
        "reviews": 12,
        "status": "instock",
    },
    {
        "name": "Relaxed Cargo Shorts",
        "price": 3200.0,
        "description": "Lightweight shorts with utility pockets.",
        "category": "unisex",
        "subcategory": "pants-shorts",
        "fabric": "Cotton twill",
        "features": ["Elastic waist", "Six pockets"],
        "colors": ["Khaki", "Olive"],
        "stock": {"M": 8, "L": 8, "XL": 4},
        "img": "/images/prod2.png",
        "rating": 4.2,
        "reviews": 7,
        "status": "instock",
    },
    {
        "name": "Everyday Zip Hoodie",
        "price": 5400.0,
        "description": "Fleece-lined hoodie for cool evenings.",
        "category": "unisex",
        "subcategory": "jackets-hoodies",
        "fabric": "Cotton fleece",
        "features": ["Full zip", "Kangaroo pockets"],
        "colors": ["Grey"],
        "stock": {"S": 3, "M": 6, "L": 6, "XL": 2, "XXL": 1},
        "img": "/images/prod3.png",
        "rating": 4.7,
        "reviews": 21,
        "status": "instock",
    },
    {
        "name": "Minimal Steel Bottle",
        "price": 1800.0,
        "description": "Insulated bottle that keeps drinks cold all day.",
        "category": "accessories",
        "subcategory": "bottles",
        "features": ["750ml", "Leak proof"],
        "colors": ["Silver", "Black"],
        "stock": {},
        "img": "/images/prod4.png",
        "rating": 4.4,
        "reviews": 9,
        "status": "instock",
    },
    {
        "name": "Braided Cord Bracelet",
        "price": 1200.0,
        "description": "Hand braided bracelet with an adjustable clasp.",
        "category": "jewelry",
        "subcategory": "bracelets",
        "features": ["Adjustable"],
        "colors": ["Brown"],
        "stock": {},
        "img": "/images/prod5.png",
        "rating": 4.0,
        "reviews": 3,
        "status": "outofstock",
    },
]


def seed_data(services: Services) -> Dict[str, int]:
    added = services.categories.initialize_defaults()

    created = failed = 0
    # only seed products into an empty catalogue
    if not services.products.find_all_simple():
        for data in SAMPLE_PRODUCTS:
            try:
                product = services.products.create(dict(data))
            except AppError as exc:
                logger.error("Failed to create product %s: %s", data["name"], exc)
                failed += 1
                continue
            logger.info("Created product: %s (%s)", product["name"], product["id"])
            created += 1

    logger.info("Seeding completed: %d categories, %d products created, %d failed", len(added), created, failed)
    return {"categories": len(added), "created": created, "failed": failed}


def main():
    settings = Settings.from_env()
    setup_logging(settings)
    result = seed_data(Services.build(settings, connect(settings)))
    print(f"Categories added: {result['categories']}")
    print(f"Products created: {result['created']}")
    print(f"Products failed: {result['failed']}")


if __name__ == "__main__":
    main()

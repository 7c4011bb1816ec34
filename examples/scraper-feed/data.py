"""Sample store offers, as a scraper might extract them from listing pages."""

BREADCRUMB = ["Home", "Electronics", "Mobiles & Accessories", "Smartphones"]

# The same phones seen at different stores. Titles and colors differ the way
# they do on real store pages; the catalog should still merge them.
SCRAPED_OFFERS = [
    {
        "store_name": "Amazon",
        "url": "https://www.amazon.in/dp/B0CHX1W1XY",
        "title": "Apple iPhone 15 (128 GB) - Black",
        "brand": "Apple",
        "model_name": "iPhone 15",
        "model_number": "MTP03HN/A",
        "storage_gb": 128,
        "color": "Black",
        "price": 69900,
        "original_price": 79900,
        "rating": 4.5,
        "review_count": 2213,
        "availability": "In stock",
        "image_url": "https://m.media-amazon.com/images/I/71657TiFeHL.jpg",
    },
    {
        "store_name": "Flipkart",
        "url": "https://www.flipkart.com/apple-iphone-15-black-128-gb/p/itm6ac6485515ae4",
        "title": "APPLE iPhone 15 (Black, 128 GB)",
        "brand": "Apple",
        "model_name": "iPhone 15",
        "storage_gb": 128,
        "ram_gb": 6,
        "color": "Black Color",
        "price": 66999,
        "original_price": 79900,
        "rating": 4.6,
        "review_count": 18732,
        "availability": "Only a few left",
    },
    {
        "store_name": "Amazon",
        "url": "https://www.amazon.in/dp/B0CS5XW6TN",
        "title": "Samsung Galaxy S24 5G (Onyx Black, 8GB, 256GB Storage)",
        "brand": "Samsung",
        "model_name": "Galaxy S24 5G",
        "model_number": "SM-S921B",
        "ram_gb": 8,
        "storage_gb": 256,
        "color": "Onyx Black",
        "price": 74999,
        "original_price": 89999,
        "rating": 4.3,
        "review_count": 981,
        "availability": "In stock",
    },
    {
        "store_name": "Croma",
        "url": "https://www.croma.com/samsung-galaxy-s24-256gb-onyx-black/p/303817",
        "title": "SAMSUNG Galaxy S24 (8GB RAM, 256GB, Onyx Black)",
        "brand": "Samsung",
        "model_name": "Galaxy S24",
        "ram_gb": 8,
        "storage_gb": 256,
        "color": "onyx black",
        "price": 72990,
        "original_price": 89999,
        "availability": "Pre-order",
    },
    {
        "store_name": "Flipkart",
        "url": "https://www.flipkart.com/redmi-note-13-4g/p/itm0b3a4f1c2b5e1",
        "title": "REDMI Note 13 4G (Ice Blue, 128 GB) (6 GB RAM)",
        "brand": "Xiaomi",
        "model_name": "Redmi Note 13 4G",
        "ram_gb": 6,
        "storage_gb": 128,
        "color": "Ice Blue",
        "price": 15999,
        "original_price": 19999,
        "rating": 4.2,
        "review_count": 5120,
        "availability": "Out of stock",
    },
]

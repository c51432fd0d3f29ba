"""
CareLink Service — Keyword category classifier
"""

DEFAULT_CATEGORY = "Other"

# Order matters: the first category with a matching keyword wins.
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Grains & Cereals", (
        "rice", "wheat", "flour", "atta", "dal", "lentil", "pulse", "oat", "cereal", "corn",
        "maize", "barley", "millet", "ragi", "jowar", "bajra", "semolina", "sooji", "rava",
        "poha", "noodle", "pasta", "bread", "roti", "chapati", "maida",
    )),
    ("Dairy Products", (
        "milk", "butter", "ghee", "cheese", "curd", "yogurt", "paneer", "cream", "buttermilk",
    )),
    ("Fruits & Vegetables", (
        "fruit", "vegetable", "apple", "banana", "orange", "mango", "grape", "potato", "onion",
        "tomato", "carrot", "spinach", "cabbage", "pea", "bean", "broccoli", "cucumber",
        "capsicum", "garlic", "ginger",
    )),
    ("Beverages", (
        "tea", "coffee", "juice", "water", "drink", "beverage", "squash", "syrup", "horlicks",
        "bournvita", "complan",
    )),
    ("Snacks & Sweets", (
        "biscuit", "cookie", "chocolate", "candy", "sweet", "chip", "namkeen", "snack", "cake",
        "jam", "jelly", "honey", "sugar", "jaggery", "gur",
    )),
    ("Hygiene & Toiletries", (
        "soap", "shampoo", "toothpaste", "toothbrush", "sanitizer", "detergent", "tissue",
        "napkin", "diaper", "sanitary", "handwash", "disinfectant", "comb", "oil", "lotion",
        "cream", "powder",
    )),
    ("Clothing", (
        "cloth", "shirt", "pant", "dress", "shoe", "sock", "uniform", "blanket", "bedsheet",
        "towel", "sweater", "jacket", "cap", "slipper", "sandal",
    )),
    ("Stationery & Books", (
        "pen", "pencil", "notebook", "eraser", "sharpener", "ruler", "book", "paper", "crayon",
        "color", "sketch", "bag", "school", "geometry",
    )),
    ("Medicine & Health", (
        "medicine", "tablet", "syrup", "bandage", "vitamin", "supplement", "first aid",
        "ointment", "drops", "thermometer", "mask", "glove",
    )),
)

CATEGORY_NAMES: tuple[str, ...] = tuple(name for name, _ in CATEGORY_KEYWORDS) + (DEFAULT_CATEGORY,)


def classify(name: str) -> str:
    lowered = name.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return DEFAULT_CATEGORY

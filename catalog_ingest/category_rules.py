"""
Catalog Ingest - Default Category Rule Table

Art-print catalog rules. Higher priority is checked first; min_confidence is
the score (0-100) a rule must reach before it can win. The last rule is the
catch-all and doubles as the fallback category.
"""
from __future__ import annotations

from catalog_ingest.models import CategoryRule


def _rule(category: str, keywords: list[str], priority: int, min_confidence: float) -> CategoryRule:
    return CategoryRule(
        category=category, keywords=tuple(keywords),
        priority=priority, min_confidence=min_confidence,
    )


DEFAULT_CATEGORY_RULES: tuple[CategoryRule, ...] = (
    # --- Religious & spiritual (most specific) ---
    _rule("Sikh Art", [
        "sikh", "gurbani", "guru", "onkar", "ek onkar", "waheguru",
        "khanda", "mool mantar", "khalsa", "punjabi art", "punjab art",
        "golden temple", "amritsar", "guru nanak", "guru gobind",
    ], 100, 70),
    _rule("Hindu Art", [
        "ganesh", "ganesha", "krishna", "shiva", "lakshmi", "durga",
        "hanuman", "ram", "radha", "saraswati", "kali", "vishnu",
        "hindu", "hinduism", "om", "aum", "mantra", "yantra",
        "diwali", "holi", "navratri", "puja",
    ], 100, 70),
    _rule("Buddhist Art", [
        "buddha", "buddhist", "zen", "meditation", "dharma", "nirvana",
        "bodhi", "lotus position", "tibetan", "mandala buddhist",
        "enlightenment", "buddhism", "mindfulness",
    ], 100, 70),
    _rule("Christian Art", [
        "christian", "jesus", "christ", "cross", "angel", "virgin mary",
        "madonna", "biblical", "church", "gospel", "christian art",
        "crucifixion", "resurrection",
    ], 100, 70),
    _rule("Islamic Art", [
        "islamic", "muslim", "calligraphy", "arabic", "allah", "quran",
        "mosque", "minaret", "islamic pattern", "islamic geometry",
        "arabic calligraphy",
    ], 100, 70),

    # --- Animals ---
    _rule("Cow Art", [
        "cow", "bull", "cattle", "gaumata", "kamadhenu", "nandi",
        "sacred cow", "cow painting", "cow art",
    ], 90, 75),
    _rule("Elephant Art", [
        "elephant", "gaja", "elephant art", "elephant painting",
        "indian elephant", "african elephant", "elephant herd",
    ], 90, 75),
    _rule("Horse Art", [
        "horse", "mare", "stallion", "equine", "horses", "mustang",
        "horse painting", "horse art", "wild horse",
    ], 90, 75),
    _rule("Bird Art", [
        "peacock", "parrot", "bird", "swan", "eagle", "dove", "hummingbird",
        "flamingo", "owl", "birds", "avian", "feather",
    ], 85, 70),
    _rule("Wildlife Art", [
        "tiger", "lion", "leopard", "panther", "cheetah", "wildlife",
        "wild animal", "safari", "jungle animal", "big cat",
    ], 85, 70),
    _rule("Pet Art", [
        "dog", "puppy", "canine", "cat", "kitten", "feline", "pet",
        "domestic animal",
    ], 85, 75),
    _rule("Aquatic Art", [
        "fish", "koi", "aquatic", "dolphin", "whale", "ocean life",
        "sea creature", "marine life", "underwater",
    ], 85, 70),

    # --- Nature & landscape ---
    _rule("Mandala Art", [
        "mandala", "mandala art", "mandala painting", "mandala design",
        "circular pattern", "sacred geometry mandala",
    ], 95, 80),
    _rule("Floral Art", [
        "flower", "floral", "rose", "lotus", "botanical", "blossom",
        "bloom", "bouquet", "garden", "petal", "flowers",
    ], 80, 70),
    _rule("Nature Art", [
        "tree", "forest", "woods", "jungle", "bamboo", "nature",
        "natural", "wilderness", "foliage", "greenery",
    ], 75, 65),
    _rule("Landscape Art", [
        "mountain", "valley", "landscape", "scenery", "hill", "vista",
        "countryside", "terrain", "panorama",
    ], 75, 65),
    _rule("Seascape Art", [
        "ocean", "sea", "beach", "wave", "coastal", "shore", "seascape",
        "maritime", "nautical", "seaside",
    ], 80, 70),
    _rule("Sky Art", [
        "sunset", "sunrise", "sky", "cloud", "dusk", "dawn", "twilight",
        "skyscape", "horizon", "celestial",
    ], 75, 65),

    # --- Abstract & modern ---
    _rule("Abstract Art", [
        "abstract", "modern", "contemporary", "geometric", "cubist",
        "non-representational", "expressionism", "abstract painting",
    ], 70, 60),
    _rule("Minimalist Art", [
        "minimalist", "minimal", "simple", "clean", "minimalism",
        "sparse", "reduced", "essential",
    ], 75, 70),
    _rule("Colorful Art", [
        "colorful", "vibrant", "rainbow", "multicolor", "bright",
        "vivid", "chromatic", "color burst", "psychedelic",
    ], 65, 60),

    # --- Cultural & regional ---
    _rule("Indian Art", [
        "indian", "india", "bharatiya", "bharat", "indian art",
        "indian culture", "indian heritage",
    ], 70, 65),
    _rule("Punjabi Art", [
        "punjabi", "punjab", "punjabi culture", "punjabi heritage",
        "bhangra", "punjabi folk",
    ], 85, 75),
    _rule("Rajasthani Art", [
        "rajasthani", "rajasthan", "rajasthani art", "rajasthani painting",
        "jaipur", "udaipur", "jodhpur",
    ], 85, 75),
    _rule("Folk Art", [
        "madhubani", "warli", "pattachitra", "gond", "tribal",
        "folk art", "traditional art", "indigenous art",
    ], 85, 75),
    _rule("Mughal Art", [
        "mughal", "persian", "miniature", "mughal painting",
        "mughal era", "mughal style",
    ], 85, 75),

    # --- People ---
    _rule("Portrait Art", [
        "portrait", "face", "woman", "man", "lady", "gentleman",
        "headshot", "likeness", "person", "human",
    ], 70, 65),
    _rule("Romantic Art", [
        "couple", "lovers", "romance", "love", "romantic",
        "affection", "intimacy", "courtship",
    ], 75, 70),
    _rule("Family Art", [
        "family", "children", "kids", "mother", "father", "parent",
        "childhood", "family portrait",
    ], 75, 70),

    # --- Themes ---
    _rule("Spiritual Art", [
        "spiritual", "divine", "sacred", "religious", "deity",
        "worship", "prayer", "devotional", "mystical",
    ], 80, 65),
    _rule("Wall Art", [
        "wall art", "canvas", "poster", "print", "framed",
        "wall decor", "wall hanging", "mural",
    ], 60, 60),
    _rule("Home Decor", [
        "home decor", "decoration", "decorative", "interior",
        "home decoration", "interior design",
    ], 60, 60),
    _rule("Musical Art", [
        "music", "musical", "instrument", "guitar", "piano", "sitar",
        "tabla", "musician", "melody",
    ], 75, 70),
    _rule("Dance Art", [
        "dance", "dancing", "dancer", "bharatnatyam", "kathak",
        "odissi", "kuchipudi", "ballet", "choreography",
    ], 75, 70),
    _rule("Vintage Art", [
        "vintage", "retro", "classic", "antique", "old-fashioned",
        "nostalgic", "historical",
    ], 70, 65),
    _rule("Metallic Art", [
        "gold", "golden", "metallic", "silver", "bronze", "copper",
        "gilt", "shimmering", "lustrous",
    ], 70, 65),

    # --- Catch-all ---
    _rule("Art Painting", [
        "painting", "art", "artwork", "canvas art", "acrylic",
        "oil painting", "watercolor", "fine art",
    ], 10, 30),
)

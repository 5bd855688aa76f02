import copy
from typing import Any, Dict, List

POSTERS: List[Dict[str, Any]] = [
    {
        "id": "1",
        "title": {"en": "Tamil Heritage Mandala", "ta": "தமிழ் பாரம்பரிய மண்டலம்"},
        "description": {
            "en": "Beautiful mandala design inspired by traditional Tamil art and architecture.",
            "ta": "பாரம்பரிய தமிழ் கலை மற்றும் கட்டிடக்கலையால் ஈர்க்கப்பட்ட அழகிய மண்டல வடிவமைப்பு.",
        },
        "artist": "Priya Krishnamurthy",
        "category": "traditional",
        "tags": ["mandala", "tamil", "heritage", "spiritual"],
        "dimensions": {"width": 24, "height": 36, "unit": "inches"},
        "file": {
            "url": "/images/posters/tamil-mandala.jpg",
            "format": "jpg",
            "resolution": "300dpi",
            "size": 15728640,
            "colorSpace": "CMYK",
        },
        "pricing": {"basePrice": 25.99, "printPrice": 15.0, "discount": 10, "currency": "USD"},
        "availability": {
            "isActive": True,
            "isFeatured": True,
            "isLimitedEdition": False,
            "stock": 100,
            "unlimitedStock": True,
        },
        "printOptions": {
            "paperTypes": ["matte", "glossy", "canvas"],
            "availableSizes": ["12x18", "18x24", "24x36"],
            "finishOptions": ["none", "black", "white", "wood"],
        },
        "stats": {"views": 2500, "downloads": 150, "likes": 89, "sales": 45},
        "seo": {
            "metaTitle": {"en": "Tamil Heritage Mandala Poster - Traditional Art Print", "ta": ""},
            "metaDescription": {
                "en": "Beautiful mandala design inspired by Tamil heritage. High-quality art print available in multiple sizes.",
                "ta": "",
            },
            "keywords": ["tamil art", "mandala poster", "traditional design", "heritage art"],
        },
        "createdAt": "2023-10-15T08:30:00+00:00",
        "updatedAt": "2023-12-01T14:20:00+00:00",
    },
    {
        "id": "2",
        "title": {"en": "Modern Tamil Typography", "ta": "நவீன தமிழ் எழுத்துக்கலை"},
        "description": {
            "en": "Contemporary typography design featuring beautiful Tamil script in modern styling.",
            "ta": "நவீன பாணியில் அழகிய தமிழ் எழுத்துகளைக் கொண்ட சமகால எழுத்துக்கலை வடிவமைப்பு.",
        },
        "artist": "Arun Selvam",
        "category": "modern",
        "tags": ["typography", "modern", "tamil script", "minimalist"],
        "dimensions": {"width": 18, "height": 24, "unit": "inches"},
        "file": {
            "url": "/images/posters/tamil-typography.jpg",
            "format": "jpg",
            "resolution": "300dpi",
            "size": 12582912,
            "colorSpace": "RGB",
        },
        "pricing": {"basePrice": 19.99, "printPrice": 12.0, "discount": 0, "currency": "USD"},
        "availability": {
            "isActive": True,
            "isFeatured": False,
            "isLimitedEdition": True,
            "stock": 100,
            "unlimitedStock": False,
        },
        "printOptions": {
            "paperTypes": ["matte", "glossy"],
            "availableSizes": ["12x16", "18x24"],
            "finishOptions": ["none", "black", "white"],
        },
        "stats": {"views": 1800, "downloads": 95, "likes": 67, "sales": 28},
        "seo": {
            "metaTitle": {"en": "Modern Tamil Typography Poster - Contemporary Design", "ta": ""},
            "metaDescription": {
                "en": "Modern typography featuring Tamil script. Perfect for contemporary home decor.",
                "ta": "",
            },
            "keywords": ["tamil typography", "modern design", "script art", "contemporary poster"],
        },
        "createdAt": "2023-11-01T10:15:00+00:00",
        "updatedAt": "2023-12-01T16:45:00+00:00",
    },
    {
        "id": "3",
        "title": {"en": "Bharathiyar Quotes Collection", "ta": "பாரதியார் மேற்கோள்கள் தொகுப்பு"},
        "description": {
            "en": "Inspirational quotes from the great Tamil poet Bharathiyar in elegant design.",
            "ta": "மகாகவி பாரதியாரின் ஊக்கமளிக்கும் மேற்கோள்கள் நேர்த்தியான வடிவமைப்பில்.",
        },
        "artist": "Meera Rajesh",
        "category": "inspirational",
        "tags": ["bharathiyar", "quotes", "poetry", "inspiration"],
        "dimensions": {"width": 16, "height": 20, "unit": "inches"},
        "file": {
            "url": "/images/posters/bharathiyar-quotes.jpg",
            "format": "jpg",
            "resolution": "300dpi",
            "size": 10485760,
            "colorSpace": "RGB",
        },
        "pricing": {"basePrice": 22.99, "printPrice": 14.0, "discount": 15, "currency": "USD"},
        "availability": {
            "isActive": True,
            "isFeatured": False,
            "isLimitedEdition": False,
            "stock": 100,
            "unlimitedStock": True,
        },
        "printOptions": {
            "paperTypes": ["matte", "glossy", "canvas"],
            "availableSizes": ["11x14", "16x20", "20x24"],
            "finishOptions": ["none", "black", "white", "gold"],
        },
        "stats": {"views": 3200, "downloads": 220, "likes": 156, "sales": 78},
        "seo": {
            "metaTitle": {"en": "Bharathiyar Quotes Poster - Tamil Poetry Art", "ta": ""},
            "metaDescription": {
                "en": "Beautiful collection of Bharathiyar quotes in elegant poster design. Perfect for Tamil literature lovers.",
                "ta": "",
            },
            "keywords": ["bharathiyar quotes", "tamil poetry", "inspirational poster", "literature art"],
        },
        "createdAt": "2023-09-20T12:00:00+00:00",
        "updatedAt": "2023-11-28T09:30:00+00:00",
    },
]

CONTENT: Dict[str, List[Dict[str, Any]]] = {
    "home": [
        {
            "sectionKey": "home.heroTitle",
            "page": "home",
            "section": "heroTitle",
            "content": {"english": "Welcome to TLS", "tamil": "TLS இல் வரவேற்கிறோம்"},
        },
        {
            "sectionKey": "home.heroSubtitle",
            "page": "home",
            "section": "heroSubtitle",
            "content": {"english": "Tamil Language Society", "tamil": "தமிழ் மொழி சங்கம்"},
        },
    ],
    "navigation": [
        {
            "sectionKey": "navigation.homeLink",
            "page": "navigation",
            "section": "homeLink",
            "content": {"english": "Home", "tamil": "முகப்பு"},
        },
        {
            "sectionKey": "navigation.aboutLink",
            "page": "navigation",
            "section": "aboutLink",
            "content": {"english": "About", "tamil": "பற்றி"},
        },
    ],
}


def poster_fixtures() -> List[Dict[str, Any]]:
    return copy.deepcopy(POSTERS)


def content_fixtures(page: str) -> List[Dict[str, Any]]:
    return copy.deepcopy(CONTENT.get(page, []))

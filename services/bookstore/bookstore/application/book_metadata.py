"""Placeholder author, description and reviews for book detail pages.

Everything is derived from a hash of the title, so a given book always gets
the same text. Only the review dates move, relative to ``now``.
"""

from datetime import datetime, timedelta
from typing import Optional

from .clock import utcnow

REVIEWER_NAMES = [
    "Sarah M.", "John D.", "Emily R.", "Michael T.", "Jessica L.",
    "David K.", "Amanda P.", "Christopher B.", "Rachel W.", "Daniel S.",
    "Lauren H.", "Kevin F.", "Nicole C.", "Robert J.", "Michelle A.",
    "Brian G.", "Stephanie N.", "Andrew M.", "Jennifer Y.", "Thomas V.",
    "Ashley Q.", "Matthew Z.", "Samantha X.", "Joshua I.", "Elizabeth O.",
]

REVIEW_TEMPLATES = [
    'Absolutely loved "{title}"! The writing is captivating and the story kept me hooked from start to finish. Highly recommend to anyone looking for a great read.',
    '"{title}" exceeded all my expectations. The author\'s storytelling ability is remarkable and I found myself thinking about this book days after finishing it.',
    'I couldn\'t put "{title}" down! One of the best books I\'ve read this year. The characters are so well-developed and the plot is engaging throughout.',
    'Really enjoyed this one. "{title}" is well-written and engaging. Lost one star only because I felt the ending was a bit rushed, but overall a solid read.',
    '"{title}" is a masterpiece. The prose is beautiful and the themes explored are both timely and timeless. Can\'t recommend this enough!',
    'A compelling read from start to finish. "{title}" tackles complex themes with grace and insight. The author\'s voice is unique and powerful.',
    'I picked up "{title}" on a whim and was blown away. The narrative is gripping and the character development is exceptional. A must-read!',
    '"{title}" is exactly what I needed. The pacing is perfect and the story resonates on multiple levels. Already looking forward to re-reading it.',
    'Wonderful book! "{title}" has everything - great characters, engaging plot, and beautiful prose. One of those books that stays with you.',
    'I appreciated the depth and nuance in "{title}". While it had some slower moments, the overall experience was rewarding and thought-provoking.',
    '"{title}" is a fantastic addition to the genre. The world-building is immersive and the story is both entertaining and meaningful.',
    'Loved every page of "{title}". The author has a gift for creating vivid imagery and memorable characters. Highly recommended!',
    '"{title}" was a delightful read. The writing style is accessible yet sophisticated, and the story kept me engaged throughout.',
    'I found "{title}" to be both entertaining and enlightening. The themes are handled with care and the narrative is compelling.',
    'Great book! "{title}" delivered on all fronts. The plot is well-constructed and the characters feel authentic and relatable.',
]

DESCRIPTION_TEMPLATES = [
    '"{title}" is a captivating exploration of human nature and relationships. Through vivid storytelling and complex characters, this book takes readers on an emotional journey that challenges perspectives and touches the heart. The narrative weaves together themes of love, loss, and redemption in ways that feel both fresh and timeless. Perfect for readers who appreciate literary fiction with depth and nuance.',
    'In this remarkable work, "{title}" delivers a powerful story that resonates long after the final page. The author\'s masterful prose brings to life a world rich in detail and authenticity. Whether you\'re drawn to character-driven narratives or thought-provoking themes, this book offers something special for every reader. A compelling addition to contemporary literature.',
    '"{title}" stands as a testament to the power of storytelling. With its intricate plot and deeply human characters, this book invites readers into a world that feels both familiar and extraordinary. The author skillfully balances entertainment with insight, creating a reading experience that is as enjoyable as it is meaningful. A must-read for book lovers everywhere.',
    'Discover the magic within the pages of "{title}". This beautifully crafted narrative explores universal themes through a unique and engaging lens. The prose is elegant, the characters unforgettable, and the story itself is a journey worth taking. Whether you\'re a casual reader or a literary enthusiast, you\'ll find much to appreciate in this exceptional work.',
    '"{title}" is a triumph of imagination and craft. The author weaves together multiple layers of meaning while never losing sight of the human story at its core. Rich with symbolism and emotional depth, this book rewards careful reading and reflection. An outstanding achievement that deserves a place on every bookshelf.',
]

BIO_TEMPLATES = [
    "The author of {title} is a celebrated writer known for creating deeply affecting works that explore the human condition with sensitivity and insight. Their writing has garnered critical acclaim and a devoted readership across generations. With a distinctive voice and masterful command of language, they continue to be one of the most important voices in contemporary literature.",
    "The author of {title} has established themselves as a literary force through their compelling narratives and rich character development. Their work spans multiple genres while maintaining a consistent commitment to excellence and authenticity. Critics and readers alike praise their ability to craft stories that are both entertaining and profound.",
    "An author of remarkable talent, the writer of {title} brings a unique perspective to every page. Their books have earned numerous accolades and touched the lives of countless readers around the world. With each new work, they demonstrate why they remain one of the most respected names in literature today.",
    "The author of {title} writes with passion, precision, and deep humanity. Their storytelling prowess has made them a beloved figure in the literary community, and their books continue to find new audiences year after year. Their contribution to literature is both significant and enduring.",
    "Known for their evocative prose and keen insight into human nature, the author of {title} has created a body of work that stands the test of time. Their writing resonates with readers seeking both entertainment and enlightenment, making them a true master of the craft.",
]

REVIEW_COUNT = 3


def title_hash(title: str) -> int:
    """31-multiplier string hash over UTF-16 code units, wrapped to a signed
    32-bit int, then made non-negative."""
    data = title.encode("utf-16-le")
    value = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        value = (value * 31 + unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return abs(value)


def _rating(seed: int) -> int:
    roll = seed % 10
    if roll < 6:
        return 5
    if roll < 9:
        return 4
    return 3


def generate_book_metadata(title: str, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    h = title_hash(title)

    reviews = []
    used = set()
    for i in range(REVIEW_COUNT):
        reviewer = (h + i * 7919) % len(REVIEWER_NAMES)
        while reviewer in used:
            reviewer = (reviewer + 1) % len(REVIEWER_NAMES)
        used.add(reviewer)
        days_ago = (h + i * 300) % 180 + 1
        reviews.append({
            "name": REVIEWER_NAMES[reviewer],
            "rating": _rating(h + i * 500),
            "date": now - timedelta(days=days_ago),
            "text": REVIEW_TEMPLATES[(h + i * 1000) % len(REVIEW_TEMPLATES)].format(title=title),
        })

    return {
        "author": f"{title}'s Author",
        "publication_date": datetime(2000 + h % 25, h % 12 + 1, h % 28 + 1),
        "description": DESCRIPTION_TEMPLATES[h % len(DESCRIPTION_TEMPLATES)].format(title=title),
        "reviews": reviews,
    }


def generate_author_bio(title: str) -> str:
    return BIO_TEMPLATES[title_hash(title) % len(BIO_TEMPLATES)].format(title=title)

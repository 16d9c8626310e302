from datetime import datetime, timedelta

from bookstore.application.book_metadata import (
    BIO_TEMPLATES,
    DESCRIPTION_TEMPLATES,
    REVIEW_TEMPLATES,
    generate_author_bio,
    generate_book_metadata,
    title_hash,
)

NOW = datetime(2024, 5, 1, 12, 0, 0)


def test_title_hash_matches_java_string_hash():
    assert title_hash("a") == 97
    assert title_hash("hello") == 99162322
    # wraps to a negative int32 before abs()
    assert title_hash("Hello World") == 862545276
    assert title_hash("") == 0


def test_title_hash_uses_utf16_code_units():
    # U+1F600 is the surrogate pair D83D DE00
    assert title_hash("\U0001F600") == 0xD83D * 31 + 0xDE00


def test_metadata_for_known_title():
    meta = generate_book_metadata("a", now=NOW)
    assert meta["author"] == "a's Author"
    assert meta["publication_date"] == datetime(2022, 2, 14)
    assert meta["description"] == DESCRIPTION_TEMPLATES[2].format(title="a")

    reviews = meta["reviews"]
    assert [r["name"] for r in reviews] == ["Samantha X.", "Stephanie N.", "Lauren H."]
    assert [r["text"] for r in reviews] == [REVIEW_TEMPLATES[i].format(title="a") for i in (7, 2, 12)]
    assert [r["rating"] for r in reviews] == [4, 4, 4]
    assert [NOW - r["date"] for r in reviews] == [timedelta(days=98), timedelta(days=38), timedelta(days=158)]


def test_metadata_is_deterministic():
    title = "The Long Winter Garden"
    assert generate_book_metadata(title, now=NOW) == generate_book_metadata(title, now=NOW)
    assert generate_author_bio(title) == generate_author_bio(title)


def test_reviewers_are_distinct_and_ratings_in_range():
    for title in ["Dune", "Emma", "Beloved", "Middlemarch", "Kindred", "Piranesi"]:
        reviews = generate_book_metadata(title, now=NOW)["reviews"]
        assert len({r["name"] for r in reviews}) == 3
        assert all(r["rating"] in (3, 4, 5) for r in reviews)
        assert all(title in r["text"] for r in reviews)


def test_author_bio_template():
    assert generate_author_bio("a") == BIO_TEMPLATES[2].format(title="a")
    assert "The Hobbit" in generate_author_bio("The Hobbit")

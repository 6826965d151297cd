"""测试条目字段提取器."""

from datetime import datetime

from shelfwatch.core.extractor import (
    BookInfo,
    book_from_author_field,
    book_from_title_pattern,
    extract_book_info,
    extract_cover_url,
    extract_event_date,
    extract_isbn,
    extract_item,
    extract_rating,
    extract_review_text,
    first_match,
    is_loved,
    rating_from_field,
    rating_from_text,
)
from shelfwatch.core.parser import FeedEntry

LONG_REVIEW = "<p>Beautifully written, I cried twice and would read it again.</p>"


class TestFirstMatch:
    """测试策略组合."""

    def test_returns_first_non_none(self) -> None:
        entry = FeedEntry(title="x")
        strategies = [lambda e: None, lambda e: 1, lambda e: 2]
        assert first_match(strategies, entry) == 1

    def test_returns_none_when_nothing_matches(self) -> None:
        assert first_match([lambda e: None], FeedEntry()) is None


class TestRating:
    """测试评分提取."""

    def test_title_with_trailing_stars(self) -> None:
        """标题末尾的 "- 5 stars"."""
        entry = FeedEntry(title="The Great Gatsby by F. Scott Fitzgerald - 5 stars")
        assert extract_rating(entry) == 5

    def test_dialect_field_wins_over_text(self) -> None:
        """user_rating 字段优先于文本."""
        entry = FeedEntry(title="gave it 2 stars", fields={"user_rating": "4"})
        assert extract_rating(entry) == 4

    def test_zero_field_means_unrated(self) -> None:
        """user_rating=0 表示未评分，继续尝试文本."""
        entry = FeedEntry(title="Dune", fields={"user_rating": "0"})
        assert rating_from_field(entry) is None
        assert extract_rating(entry) is None

    def test_rated_it_out_of_five(self) -> None:
        entry = FeedEntry(title="Alice rated it 4 out of 5 stars")
        assert rating_from_text(entry) == 4

    def test_rated_it_word_number(self) -> None:
        entry = FeedEntry(title="Alice rated it five stars")
        assert rating_from_text(entry) == 5

    def test_gave_it_in_body(self) -> None:
        entry = FeedEntry(title="Dune", content="<p>I gave it 3 stars.</p>")
        assert rating_from_text(entry) == 3

    def test_bracket_notation(self) -> None:
        entry = FeedEntry(title="Dune [5 stars]")
        assert rating_from_text(entry) == 5

    def test_star_glyphs(self) -> None:
        entry = FeedEntry(title="Dune", summary="★★★★★ loved it")
        assert rating_from_text(entry) == 5

    def test_emoji_stars_with_variation_selector(self) -> None:
        entry = FeedEntry(title="Dune " + "\u2b50\ufe0f" * 4)
        assert rating_from_text(entry) == 4

    def test_average_rating_ignored(self) -> None:
        """average rating 不是用户评分."""
        entry = FeedEntry(title="Dune", summary="average rating: 4.21")
        assert rating_from_text(entry) is None

    def test_fractional_stars_ignored(self) -> None:
        """"3.5 stars" 一类的平均分不会被当成 5 星."""
        entry = FeedEntry(
            title="Dune by Frank Herbert",
            summary="<p>Community average is 3.5 stars, I have not started it yet.</p>",
        )
        assert rating_from_text(entry) is None
        assert is_loved(entry) is False

    def test_fractional_out_of_five_ignored(self) -> None:
        entry = FeedEntry(title="Dune", summary="Readers give it 4.5 of 5 stars")
        assert rating_from_text(entry) is None

    def test_no_rating(self) -> None:
        assert extract_rating(FeedEntry(title="Dune", summary="A book")) is None


class TestBookInfo:
    """测试书名与作者提取."""

    def test_title_by_author_with_rating_suffix(self) -> None:
        """标题带评分后缀."""
        entry = FeedEntry(title="The Great Gatsby by F. Scott Fitzgerald - 5 stars")
        assert extract_book_info(entry) == BookInfo(
            title="The Great Gatsby", author="F. Scott Fitzgerald"
        )

    def test_reviewed_pattern(self) -> None:
        entry = FeedEntry(title="Alice reviewed Dune by Frank Herbert")
        info = book_from_title_pattern(entry)
        assert info == BookInfo(title="Dune", author="Frank Herbert")

    def test_author_field_strips_rating(self) -> None:
        """有 author_name 字段时只清理标题."""
        entry = FeedEntry(
            title="Dune [4 stars]", fields={"author_name": "Frank Herbert"}
        )
        assert book_from_author_field(entry) == BookInfo(
            title="Dune", author="Frank Herbert"
        )

    def test_whole_title_fallback(self) -> None:
        entry = FeedEntry(title="  Dune  ")
        assert extract_book_info(entry) == BookInfo(title="Dune", author=None)

    def test_missing_title(self) -> None:
        assert extract_book_info(FeedEntry()).title == "Unknown Title"


class TestReviewText:
    """测试书评提取."""

    def test_strips_html_and_entities(self) -> None:
        entry = FeedEntry(content="<p>Loved it &amp; the ending<br/>was perfect.</p>")
        assert extract_review_text(entry) == "Loved it & the ending\nwas perfect."

    def test_short_text_discarded(self) -> None:
        assert extract_review_text(FeedEntry(content="<p>Great!</p>")) is None

    def test_metadata_only_discarded(self) -> None:
        entry = FeedEntry(content="rated it 5 stars and added it to the shelf")
        assert extract_review_text(entry) is None

    def test_user_review_field_preferred(self) -> None:
        entry = FeedEntry(
            content="<p>Something else entirely in the body here.</p>",
            fields={"user_review": "My own thoughts on this wonderful book."},
        )
        assert extract_review_text(entry) == "My own thoughts on this wonderful book."

    def test_truncated(self) -> None:
        entry = FeedEntry(content="a" * 5000)
        review = extract_review_text(entry)
        assert review is not None
        assert len(review) == 1000


class TestIsLoved:
    """测试「喜爱」判定."""

    def test_five_stars(self) -> None:
        assert is_loved(FeedEntry(fields={"user_rating": "5"})) is True

    def test_four_stars_with_review(self) -> None:
        entry = FeedEntry(fields={"user_rating": "4"}, content=LONG_REVIEW)
        assert is_loved(entry) is True

    def test_four_stars_without_review(self) -> None:
        assert is_loved(FeedEntry(fields={"user_rating": "4"})) is False

    def test_favorites_shelf(self) -> None:
        entry = FeedEntry(fields={"user_rating": "3", "user_shelves": "read, All-Time-Favourites"})
        assert is_loved(entry) is True

    def test_favorites_tag(self) -> None:
        assert is_loved(FeedEntry(tags=["Loved-It"])) is True

    def test_three_stars(self) -> None:
        assert is_loved(FeedEntry(fields={"user_rating": "3"})) is False


class TestEventDate:
    """测试事件时间提取."""

    def test_parsed_published_first(self) -> None:
        published = datetime(2024, 5, 4, 17, 0)
        entry = FeedEntry(published_at=published, fields={"user_read_at": "2020/01/01"})
        assert extract_event_date(entry) == published

    def test_raw_pub_date(self) -> None:
        entry = FeedEntry(published="Sat, 04 May 2024 10:00:00 -0700")
        assert extract_event_date(entry) == datetime(2024, 5, 4, 17, 0)

    def test_read_at_then_date_added(self) -> None:
        entry = FeedEntry(fields={"user_date_added": "2023/01/15"})
        assert extract_event_date(entry) == datetime(2023, 1, 15)

    def test_unparseable(self) -> None:
        assert extract_event_date(FeedEntry(published="someday")) is None


class TestCoverUrl:
    """测试封面提取."""

    def test_prefers_large_image(self) -> None:
        entry = FeedEntry(
            fields={
                "book_small_image_url": "https://img/s.jpg",
                "book_large_image_url": "https://img/l.jpg",
            }
        )
        assert extract_cover_url(entry) == "https://img/l.jpg"

    def test_falls_back_to_body_image(self) -> None:
        entry = FeedEntry(summary='<a href="#"><img src="https://img/b.jpg"/></a>')
        assert extract_cover_url(entry) == "https://img/b.jpg"

    def test_none(self) -> None:
        assert extract_cover_url(FeedEntry(summary="no image")) is None


class TestOtherFields:
    """测试 ISBN、好友名称等字段."""

    def test_isbn_cleaned(self) -> None:
        assert extract_isbn(FeedEntry(fields={"isbn": '="0743273567"'})) == "0743273567"

    def test_extract_item(self) -> None:
        entry = FeedEntry(
            guid="r1",
            link="https://www.goodreads.com/review/show/r1",
            title="The Great Gatsby by F. Scott Fitzgerald - 5 stars",
            author="Alice",
        )
        item = extract_item(entry, "Goodreads")
        assert item.book_title == "The Great Gatsby"
        assert item.book_author == "F. Scott Fitzgerald"
        assert item.rating == 5
        assert item.is_loved is True
        assert item.friend_name == "Alice"
        assert item.book_url == "https://www.goodreads.com/review/show/r1"

    def test_friend_name_falls_back_to_label(self) -> None:
        item = extract_item(FeedEntry(title="Dune"), "Goodreads (favorites shelf)")
        assert item.friend_name == "Goodreads (favorites shelf)"

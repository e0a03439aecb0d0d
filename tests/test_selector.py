import io

import pytest
from rich.console import Console

from canvas_cli.errors import EmptySelection, UserCancelled
from canvas_cli.models import Course
from canvas_cli.selector import RichSelector, parse_indices


def _selector(answers: str) -> tuple[RichSelector, io.StringIO]:
    out = io.StringIO()
    console = Console(file=out, force_terminal=False, width=100)
    return RichSelector(console, stream=io.StringIO(answers)), out


def test_parse_indices() -> None:
    assert parse_indices("2", 3) == {1}
    assert parse_indices("1, 3", 3) == {0, 2}
    assert parse_indices("3-1", 5) == {0, 1, 2}
    assert parse_indices("all", 3) == {0, 1, 2}
    assert parse_indices("slides", 3) is None
    assert parse_indices("", 3) is None
    with pytest.raises(ValueError):
        parse_indices("4", 3)


def test_select_one_returns_index_in_given_order() -> None:
    courses = [Course(1, "alpha"), Course(2, "bravo"), Course(3, "charlie")]
    selector, out = _selector("2\n")
    idx = selector.select_one("Course?", [c.name for c in courses])
    assert courses[idx] == Course(2, "bravo")
    rendered = out.getvalue()
    assert rendered.index("alpha") < rendered.index("bravo") < rendered.index("charlie")


def test_out_of_range_and_multiple_answers_are_reasked() -> None:
    selector, out = _selector("9\n1,2\n3\n")
    assert selector.select_one("Pick", ["a", "b", "c"]) == 2
    assert "not between 1 and 3" in out.getvalue()
    assert "exactly one" in out.getvalue()


def test_text_answer_filters_options() -> None:
    selector, out = _selector("slides\n2\n")
    assert selector.select_one("Files?", ["notes.md", "slides.pptx", "syllabus.pdf"]) == 1
    last_table = out.getvalue().rsplit("Files?", 2)[-2]
    assert "slides.pptx" in last_table
    assert "notes.md" not in last_table


def test_select_many_accepts_ranges() -> None:
    selector, _ = _selector("1-2,4\n")
    assert selector.select_many("Files?", ["a", "b", "c", "d"]) == {0, 1, 3}


def test_quit_cancels() -> None:
    selector, _ = _selector("q\n")
    with pytest.raises(UserCancelled):
        selector.select_one("Course?", ["a"])


def test_empty_options_fail_without_prompting() -> None:
    selector, out = _selector("")
    with pytest.raises(EmptySelection):
        selector.select_many("Files?", [])
    assert out.getvalue() == ""


def test_confirm() -> None:
    selector, _ = _selector("n\n")
    assert selector.confirm("Submit?") is False
    selector, _ = _selector("y\n")
    assert selector.confirm("Submit?") is True

import httpx
import pytest
from conftest import ScriptedSelector, no_network

from canvas_cli.errors import EmptySelection, NotFound, UrlParseError
from canvas_cli.models import AssignmentTarget, ByIds, ByUrl, Interactive
from canvas_cli.resolver import (
    parse_assignment_url,
    parse_files_url,
    reference_from_args,
    resolve_assignment,
    resolve_files,
)

COURSES = [{"id": 1, "name": "A"}, {"id": 2, "name": "B"}, {"id": 3, "name": "C"}]
ASSIGNMENTS = [
    {"id": 20, "name": "Essay", "submission_types": ["online_text_entry"]},
    {"id": 21, "name": "HW1", "submission_types": ["online_upload"]},
    {"id": 22, "name": "HW2", "submission_types": ["online_upload"]},
]
FILES = [
    {"id": 30, "display_name": "syllabus.pdf", "size": 1024, "url": "https://canvas.test/f/30"},
    {"id": 31, "filename": "slides.pptx", "size": 10, "url": "https://canvas.test/f/31"},
    {"id": 32, "display_name": "notes.md", "size": 3, "url": "https://canvas.test/f/32"},
]


def canvas(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/api/v1/courses":
        return httpx.Response(200, json=COURSES)
    if path.endswith("/assignments"):
        return httpx.Response(200, json=ASSIGNMENTS)
    if path.endswith("/files"):
        return httpx.Response(200, json=FILES)
    return httpx.Response(404)


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://school.instructure.com/courses/123/assignments/456", (123, 456)),
        ("https://canvas.test/courses/1/assignments/2/submissions/3?x=1", (1, 2)),
        ("http://canvas.test/api/v1/courses/77/assignments/88", (77, 88)),
    ],
)
def test_parse_assignment_url(url, expected) -> None:
    assert parse_assignment_url(url) == expected


@pytest.mark.parametrize(
    "url",
    [
        "",
        "courses/1/assignments/2",
        "https://canvas.test/courses/1",
        "https://canvas.test/courses/x/assignments/2",
        "https://canvas.test/courses/1/assignmentsX/2",
        "ftp://canvas.test/courses/1/assignments/2",
    ],
)
def test_bad_assignment_url_fails_without_network(make_client, url) -> None:
    client, recorder = make_client(no_network)
    with pytest.raises(UrlParseError):
        resolve_assignment(client, ScriptedSelector(), ByUrl(url))
    assert recorder.requests == []


def test_parse_files_url() -> None:
    assert parse_files_url("https://canvas.test/courses/4/files") == (4, None)
    assert parse_files_url("https://canvas.test/courses/4/files/folder/week1") == (4, None)
    assert parse_files_url("https://canvas.test/courses/4/files/99/download") == (4, 99)
    with pytest.raises(UrlParseError):
        parse_files_url("https://canvas.test/courses/4/modules")


def test_reference_from_args_prefers_url() -> None:
    assert reference_from_args(1, 2, "https://x.test/courses/3/assignments/4") == ByUrl(
        "https://x.test/courses/3/assignments/4"
    )
    assert reference_from_args(1, 2) == ByIds(1, 2)
    assert reference_from_args(1, None) == Interactive(1, None)
    assert reference_from_args() == Interactive()


def test_explicit_ids_issue_no_list_calls(make_client) -> None:
    client, recorder = make_client(no_network)
    selector = ScriptedSelector()
    target = resolve_assignment(client, selector, ByIds(987654321, 123456789))
    assert target == AssignmentTarget(987654321, 123456789)
    assert recorder.requests == []
    assert selector.prompts == []


def test_url_reference_resolves_without_prompts(make_client) -> None:
    client, recorder = make_client(no_network)
    target = resolve_assignment(
        client, ScriptedSelector(), ByUrl("https://canvas.test/courses/5/assignments/6")
    )
    assert target == AssignmentTarget(5, 6)
    assert recorder.requests == []


def test_interactive_selection_keeps_server_order(make_client) -> None:
    client, _ = make_client(canvas)
    selector = ScriptedSelector(one=[1, 0])
    target = resolve_assignment(client, selector, Interactive())

    course_prompt, course_labels = selector.prompts[0]
    assert course_prompt == "Course?"
    assert course_labels == ["A", "B", "C"]
    assert target.course_id == 2
    # only upload assignments are offered; index 0 is HW1
    assert selector.prompts[1][1] == ["HW1", "HW2"]
    assert target.assignment_id == 21


def test_partial_reference_only_prompts_for_missing_part(make_client) -> None:
    client, recorder = make_client(canvas)
    selector = ScriptedSelector(one=[1])
    target = resolve_assignment(client, selector, Interactive(course_id=8))
    assert target == AssignmentTarget(8, 22)
    assert [p for p, _ in selector.prompts] == ["Assignment?"]
    assert recorder.paths == ["/api/v1/courses/8/assignments"]


def test_assignment_given_without_course_prompts_for_course_only(make_client) -> None:
    client, recorder = make_client(canvas)
    selector = ScriptedSelector(one=[2])
    target = resolve_assignment(client, selector, Interactive(target_id=44))
    assert target == AssignmentTarget(3, 44)
    assert recorder.paths == ["/api/v1/courses"]


def test_no_courses_is_empty_selection(make_client) -> None:
    client, _ = make_client(lambda request: httpx.Response(200, json=[]))
    with pytest.raises(EmptySelection):
        resolve_assignment(client, ScriptedSelector(), Interactive())


def test_resolve_files_with_explicit_ids(make_client) -> None:
    client, _ = make_client(canvas)
    selector = ScriptedSelector()
    target = resolve_files(client, selector, Interactive(course_id=4), file_ids=[32, 30, 32])
    assert target.course_id == 4
    assert [f.id for f in target.files] == [32, 30]
    assert target.files[1].name == "syllabus.pdf"
    assert selector.prompts == []


def test_resolve_files_unknown_id_is_not_found(make_client) -> None:
    client, _ = make_client(canvas)
    with pytest.raises(NotFound):
        resolve_files(client, ScriptedSelector(), Interactive(course_id=4), file_ids=[99])


def test_resolve_files_fetches_unlisted_id_directly(make_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v1/files/40":
            return httpx.Response(
                200,
                json={"id": 40, "display_name": "hidden.pdf", "size": 8, "url": "https://canvas.test/f/40"},
            )
        return canvas(request)

    client, recorder = make_client(handler)
    target = resolve_files(client, ScriptedSelector(), Interactive(course_id=4), file_ids=[30, 40])
    assert [f.name for f in target.files] == ["syllabus.pdf", "hidden.pdf"]
    assert target.files[1].course_id == 4
    assert recorder.paths == ["/api/v1/courses/4/files", "/api/v1/files/40"]


def test_resolve_files_interactive_multi_select(make_client) -> None:
    client, _ = make_client(canvas)
    selector = ScriptedSelector(one=[0], many=[{2, 0}])
    target = resolve_files(client, selector, Interactive())
    assert [f.id for f in target.files] == [30, 32]
    assert selector.prompts[1][1] == ["syllabus.pdf (1.0 KiB)", "slides.pptx (10 B)", "notes.md (3 B)"]


def test_resolve_files_from_url_with_file_id(make_client) -> None:
    client, _ = make_client(canvas)
    target = resolve_files(
        client, ScriptedSelector(), ByUrl("https://canvas.test/courses/4/files/31")
    )
    assert [f.name for f in target.files] == ["slides.pptx"]

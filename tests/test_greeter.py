import pytest

from mcpservers.greeter import (
    complete,
    prompt_hi,
    read_embedded_resource,
    say_hi,
    select_server,
)


def test_say_hi_greets_user():
    result = say_hi({"name": "user"})
    assert result.content[0].text == "Hi user"
    assert result.text() == "Hi user"


def test_say_hi_without_name():
    assert say_hi(None).text() == "Hi "


def test_say_hi_to_dict():
    assert say_hi({"name": "Ann"}).to_dict() == {
        "content": [{"type": "text", "text": "Hi Ann"}]
    }


def test_prompt_hi():
    result = prompt_hi({"name": "Bob"})
    assert result["description"] == "Code review prompt"
    assert result["messages"] == [
        {"role": "user", "content": {"type": "text", "text": "Say hi to Bob"}}
    ]


def test_read_embedded_resource():
    result = read_embedded_resource("embedded:info")
    assert len(result.contents) == 1
    content = result.contents[0]
    assert content.uri == "embedded:info"
    assert content.mime_type == "text/plain"
    assert content.text == "This is the hello example server."


def test_read_embedded_resource_wrong_scheme():
    with pytest.raises(ValueError, match='wrong scheme: "file"'):
        read_embedded_resource("file:info")


def test_read_embedded_resource_missing_key():
    with pytest.raises(LookupError, match='no embedded resource named "nothing"'):
        read_embedded_resource("embedded:nothing")


def test_read_embedded_resource_with_authority_has_no_key():
    with pytest.raises(LookupError, match='named ""'):
        read_embedded_resource("embedded://info")


@pytest.mark.parametrize(
    "ref_type, values",
    [
        ("ref/prompt", ["suggestion1", "suggestion2", "suggestion3"]),
        ("ref/resource", ["suggestion4", "suggestion5", "suggestion6"]),
    ],
)
def test_complete(ref_type, values):
    assert complete(ref_type) == {
        "completion": {"hasMore": False, "total": 3, "values": values}
    }


def test_complete_unknown_type():
    with pytest.raises(ValueError, match="unrecognized content type ref/other"):
        complete("ref/other")


def test_select_server():
    servers = {"/greeter1": "one", "/greeter2": "two"}
    assert select_server("/greeter1", servers) == "one"
    assert select_server("/greeter2", servers) == "two"
    assert select_server("/other", servers) is None
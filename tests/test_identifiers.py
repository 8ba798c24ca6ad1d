import pytest

from limakit.identifiers import MAX_LENGTH, validate


@pytest.mark.parametrize("name", ["default", "foo", "ubuntu-22.04", "a_b", "A1"])
def test_valid_identifiers_are_returned(name):
    assert validate(name) == name


@pytest.mark.parametrize("name", ["", "-foo", "foo-", "foo..bar", "foo/bar", "foo bar", "é"])
def test_invalid_identifiers_raise(name):
    with pytest.raises(ValueError):
        validate(name)


def test_length_limit():
    assert validate("a" * MAX_LENGTH) == "a" * MAX_LENGTH
    with pytest.raises(ValueError, match="maximum length"):
        validate("a" * (MAX_LENGTH + 1))
import pytest

from certhelper.common.subject import Subject
from certhelper.engine import issue_intermediate, issue_root


@pytest.fixture
def base(tmp_path):
    return str(tmp_path)


@pytest.fixture
def root(base):
    return issue_root(base, "default", Subject(common_name="Test CA", organization="Example Org"), 3600)


@pytest.fixture
def intermediate(base, root):
    return issue_intermediate(base, "default", "mid", Subject(common_name="Mid CA"), 1800)

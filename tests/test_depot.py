import os

import pytest

from certhelper.common.subject import Subject
from certhelper.crypto.keys import KeyType
from certhelper.engine import issue_root
from certhelper.errors import IssuerUnavailable
from certhelper.scep.depot import Depot


@pytest.fixture
def device_cert(base):
    # any certificate works for storage; take one from an unrelated root
    return issue_root(base, "other", Subject(common_name="device 1"), 30).certificate()


def test_ca_material(base, root):
    certs, key = Depot(base).ca(b"ignored")
    assert certs == [root.certificate()]
    assert key.key_type is KeyType.RSA


def test_missing_ca(base):
    with pytest.raises(IssuerUnavailable) as info:
        Depot(base, "missing").ca()
    assert info.value.name == "missing"


def test_serials_are_fresh(base):
    depot = Depot(base)
    assert depot.serial() != depot.serial()
    assert depot.serial() > 0


def test_put_and_has_cn(base, root, device_cert):
    depot = Depot(base)
    assert not depot.has_cn("device 1")

    path = depot.put("fallback", device_cert)
    assert path == os.path.join(base, "certs", "root", "default", "cert_device_1.pem")
    assert os.path.exists(path)
    assert depot.has_cn("device 1")
    assert depot.has_cn("", cert=device_cert)
    assert not Depot(base, "other").has_cn("device 1")

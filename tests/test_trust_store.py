import os
from datetime import datetime, timedelta, timezone

from certhelper.common.subject import Subject
from certhelper.engine import issue_certificate, issue_intermediate, issue_root
from certhelper.storage.trust_store import (
    IntermediateCAInfo,
    certificate_status,
    collect_certificates,
    list_all_intermediate_cas,
    list_intermediate_cas,
    list_root_cas,
    summarize_certificates,
)


def test_empty_store(base):
    assert list_root_cas(base) == []
    assert list_intermediate_cas(base, "default") == []
    assert list_all_intermediate_cas(base) == []
    assert collect_certificates(base) == []


def test_roots_are_listed_sorted(base, root):
    issue_root(base, "corp", Subject(common_name="Corp"), 30)
    issue_root(base, "alpha", Subject(common_name="Alpha"), 30)
    assert list_root_cas(base) == ["alpha", "corp", "default"]


def test_default_root_needs_both_files(base, root):
    os.remove(root.key_path)
    assert list_root_cas(base) == []


def test_named_root_is_listed_by_directory(base):
    os.makedirs(os.path.join(base, "ca", "root", "empty"))
    assert list_root_cas(base) == ["empty"]


def test_intermediates(base, root, intermediate):
    issue_root(base, "corp", Subject(common_name="Corp"), 30)
    issue_intermediate(base, "corp", "issuing", Subject(common_name="Issuing"), 30)
    issue_intermediate(base, "default", "another", Subject(common_name="Another"), 30)
    assert list_intermediate_cas(base, "default") == ["another", "mid"]
    assert list_intermediate_cas(base, "") == ["another", "mid"]
    assert list_intermediate_cas(base, "corp") == ["issuing"]
    assert list_all_intermediate_cas(base) == [
        IntermediateCAInfo("corp", "issuing"),
        IntermediateCAInfo("default", "another"),
        IntermediateCAInfo("default", "mid"),
    ]


def test_certificate_status():
    now = datetime(2030, 1, 1, tzinfo=timezone.utc)
    assert certificate_status(now - timedelta(days=1), now) == ("Expired", 0)
    assert certificate_status(now + timedelta(days=10), now) == ("Expiring Soon", 10)
    assert certificate_status(now + timedelta(days=31), now) == ("Valid", 31)


def test_collect_and_summarize(base, root, intermediate):
    issue_certificate(base, "intermediate", "default", "mid", Subject(common_name="svc.local"), [], 20)
    with open(os.path.join(base, "junk.pem"), "w") as f:
        f.write("not a certificate\n")

    entries = collect_certificates(base)
    assert [(e.name, e.type) for e in entries] == [
        ("svc.local", "Certificate"),
        ("Mid CA", "Intermediate CA"),
        ("Test CA", "Root CA"),
    ]
    assert entries[0].issuer == "Mid CA"
    assert entries[0].status == "Expiring Soon"

    summary = summarize_certificates(entries)
    assert summary.total == 3
    assert summary.valid == 2
    assert summary.expiring == 1
    assert summary.expired == 0
    assert summary.next_expiry == entries[0]


def test_everything_expired_later(base, root):
    later = datetime.now(timezone.utc) + timedelta(days=4000)
    entries = collect_certificates(base, now=later)
    assert [e.status for e in entries] == ["Expired"]
    summary = summarize_certificates(entries)
    assert summary.expired == 1
    assert summary.next_expiry is None

from __future__ import annotations

import json

import pytest

from lms_identity.domain.account import Role, SeedAccount
from lms_identity.seeds import (
    DEFAULT_SEED_ACCOUNTS,
    StaticSeedAccountProvider,
    build_seed_provider,
    load_seed_accounts,
)


def test_default_provider_uses_demo_accounts():
    provider = build_seed_provider("")
    accounts = provider.list_seed_accounts()

    assert list(accounts) == list(DEFAULT_SEED_ACCOUNTS)
    assert [a.legacy_id for a in accounts] == ["1", "2", "3", "4"]
    assert {a.role for a in accounts} == set(Role)


def test_load_seed_accounts_accepts_numeric_ids(tmp_path):
    path = tmp_path / "seeds.json"
    path.write_text(
        json.dumps(
            [
                {"legacy_id": 10, "email": "lecturer@school.org", "role": "instructor"},
                {"legacy_id": " 11 ", "email": "author@school.org", "role": "contentCreator"},
            ]
        ),
        encoding="utf-8",
    )

    accounts = load_seed_accounts(path)

    assert accounts == [
        SeedAccount(legacy_id="10", email="lecturer@school.org", role=Role.instructor),
        SeedAccount(legacy_id="11", email="author@school.org", role=Role.content_creator),
    ]
    assert build_seed_provider(str(path)).list_seed_accounts() == tuple(accounts)


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        json.dumps([{"legacy_id": "1", "email": "not-an-email", "role": "admin"}]),
        json.dumps([{"legacy_id": "1", "email": "a@school.org", "role": "superuser"}]),
        json.dumps({"legacy_id": "1", "email": "a@school.org", "role": "admin"}),
    ],
)
def test_load_seed_accounts_rejects_invalid_files(tmp_path, content):
    path = tmp_path / "seeds.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError, match="invalid seed accounts file"):
        load_seed_accounts(path)


def test_provider_rejects_duplicate_legacy_ids():
    with pytest.raises(ValueError, match="legacy id"):
        StaticSeedAccountProvider(
            [
                SeedAccount(legacy_id="1", email="a@school.org", role=Role.user),
                SeedAccount(legacy_id="1", email="b@school.org", role=Role.user),
            ]
        )


def test_provider_rejects_duplicate_emails_ignoring_case():
    with pytest.raises(ValueError, match="email"):
        StaticSeedAccountProvider(
            [
                SeedAccount(legacy_id="1", email="a@school.org", role=Role.user),
                SeedAccount(legacy_id="2", email="A@School.org", role=Role.admin),
            ]
        )

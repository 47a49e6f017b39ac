"""Tests for the flaneur CLI."""

import pytest
from typer.testing import CliRunner

from flaneur import cli

runner = CliRunner()


@pytest.fixture(autouse=True)
def use_test_service(service, monkeypatch):
    monkeypatch.setattr(cli, "referral_service", service)


def test_issue_code_prints_code_and_link(service, make_profile):
    owner = make_profile()

    result = runner.invoke(cli.app, ["issue-code", "profile", owner.id])

    assert result.exit_code == 0
    code = service.issue_code(owner)
    assert code in result.output
    assert "https://flaneur.test/invite?ref=" in result.output


def test_issue_code_for_unknown_account_fails():
    result = runner.invoke(cli.app, ["issue-code", "newsletter", "missing"])

    assert result.exit_code == 1
    assert "AccountNotFound" in result.output


def test_resolve_shows_account_kind(make_subscriber):
    make_subscriber(referral_code="read1234")

    result = runner.invoke(cli.app, ["resolve", "read1234"])

    assert result.exit_code == 0
    assert "newsletter" in result.output


def test_resolve_unknown_fails():
    result = runner.invoke(cli.app, ["resolve", "nobody99"])

    assert result.exit_code == 1


def test_click_and_convert_report_outcomes(make_profile):
    make_profile(referral_code="abc")

    click = runner.invoke(cli.app, ["track-click", "abc", "--ip", "1.2.3.4"])
    again = runner.invoke(cli.app, ["track-click", "abc", "--ip", "1.2.3.4"])
    convert = runner.invoke(cli.app, ["convert", "abc", "new@example.com"])

    assert "tracked" in click.output
    assert "duplicate" in again.output
    assert "upgraded" in convert.output


def test_stats_table(make_profile):
    owner = make_profile(referral_code="abc")
    runner.invoke(cli.app, ["track-click", "abc", "--ip", "1.2.3.4"])

    result = runner.invoke(cli.app, ["stats", "profile", owner.id])

    assert result.exit_code == 0
    assert "Clicks" in result.output
    assert "Conversions" in result.output

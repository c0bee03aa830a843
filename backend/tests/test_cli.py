"""
Flask CLI command tests.
"""

from gemledger.models import ApprovalRule


class TestRulesCommands:

    def test_add_and_list(self, app, db_session):
        runner = app.test_cli_runner()

        added = runner.invoke(args=["rules", "add", "--type", "margin", "--threshold", "12.5"])
        assert added.exit_code == 0, added.output
        assert "Added MARGIN rule" in added.output

        listed = runner.invoke(args=["rules", "list"])
        assert "12.5%" in listed.output

    def test_deactivate_missing_rule(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["rules", "deactivate", "999"])
        assert result.exit_code != 0
        assert db_session.query(ApprovalRule).count() == 0


class TestInvoiceCommands:

    def test_reset_requires_confirmation(self, app, db_session, make_invoice):
        invoice = make_invoice(50000)
        result = app.test_cli_runner().invoke(args=["invoices", "reset", str(invoice.id)])
        assert result.exit_code != 0
        assert "--yes" in result.output

    def test_show_missing_invoice(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["invoices", "show", "31337"])
        assert result.exit_code != 0


class TestQuoteCommands:

    def test_expire_bad_date(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["quotes", "expire", "--today", "yesterday"])
        assert result.exit_code != 0

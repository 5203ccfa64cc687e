import io
import pytest
from decimal import Decimal

from exceptions import InputFileError, TransactionParseError
from models import TransactionType
from readers import open_transactions, parse_row, read_transactions


def read(text):
    return list(read_transactions(io.StringIO(text)))


class TestReadTransactions:
    """Test CSV parsing into records."""

    def test_basic_rows(self):
        records = read(
            "type,client,tx,amount\n"
            "deposit,1,1,1.0\n"
            "withdrawal,2,5,3.0\n"
        )

        assert [r.type for r in records] == [TransactionType.deposit, TransactionType.withdrawal]
        assert records[1].client == 2
        assert records[1].tx == 5
        assert records[1].amount == Decimal("3.0")

    def test_whitespace_trimmed(self):
        records = read(
            "type, client, tx, amount\n"
            "deposit, 1, 1, 1.0\n"
            "  withdrawal ,1 , 2 ,  3.5545  \n"
        )

        assert records[0].amount == Decimal("1.0")
        assert records[1].type == TransactionType.withdrawal
        assert records[1].amount == Decimal("3.5545")

    def test_dispute_rows_with_and_without_trailing_comma(self):
        records = read(
            "type,client,tx,amount\n"
            "dispute,1,1,\n"
            "resolve,1,1\n"
            "chargeback, 1, 1, \n"
        )

        assert [r.type for r in records] == [
            TransactionType.dispute,
            TransactionType.resolve,
            TransactionType.chargeback,
        ]
        assert all(r.amount is None for r in records)

    def test_blank_lines_skipped(self):
        records = read("type,client,tx,amount\n\ndeposit,1,1,1\n   \n")
        assert len(records) == 1

    def test_empty_stream(self):
        assert read("") == []

    def test_header_only(self):
        assert read("type,client,tx,amount\n") == []

    def test_order_preserved(self):
        rows = "".join(f"deposit,{tx % 3},{tx},1\n" for tx in range(20))
        records = read("type,client,tx,amount\n" + rows)
        assert [r.tx for r in records] == list(range(20))

    def test_unknown_type_is_fatal(self):
        with pytest.raises(TransactionParseError) as exc_info:
            read("type,client,tx,amount\ndeposit,1,1,1\ntransfer,1,2,1\n")

        assert exc_info.value.line_number == 3
        assert "type" in exc_info.value.detail

    def test_non_numeric_client_is_fatal(self):
        with pytest.raises(TransactionParseError):
            read("type,client,tx,amount\ndeposit,abc,1,1\n")

    def test_client_out_of_range_is_fatal(self):
        with pytest.raises(TransactionParseError):
            read("type,client,tx,amount\ndeposit,70000,1,1\n")

    def test_missing_amount_on_deposit_is_fatal(self):
        with pytest.raises(TransactionParseError):
            read("type,client,tx,amount\ndeposit,1,1,\n")

    def test_missing_tx_is_fatal(self):
        with pytest.raises(TransactionParseError) as exc_info:
            read("type,client,tx,amount\ndeposit,1\n")
        assert "tx" in exc_info.value.detail

    def test_oversized_amount_is_fatal(self):
        with pytest.raises(TransactionParseError) as exc_info:
            read("type,client,tx,amount\ndeposit,1,1,100000000000000000000000000\n")
        assert exc_info.value.line_number == 2
        assert "amount" in exc_info.value.detail

    def test_extra_fields_are_fatal(self):
        with pytest.raises(TransactionParseError) as exc_info:
            read("type,client,tx,amount\ndeposit,1,1,1.0\ndeposit,1,2,1.0,5\n")
        assert exc_info.value.line_number == 3

    def test_empty_trailing_field_tolerated(self):
        records = read("type,client,tx,amount\ndeposit,1,1,1.0,\n")
        assert records[0].amount == Decimal("1.0")

    def test_missing_header_column(self):
        with pytest.raises(TransactionParseError) as exc_info:
            read("type,client,amount\ndeposit,1,1\n")
        assert exc_info.value.line_number == 1

    def test_reader_is_lazy(self):
        """Rows before a malformed one are yielded before the error surfaces."""
        records = read_transactions(io.StringIO("type,client,tx,amount\ndeposit,1,1,1\nbogus,1,2,1\n"))

        assert next(records).tx == 1
        with pytest.raises(TransactionParseError):
            next(records)


class TestParseRow:
    def test_parse_row(self):
        record = parse_row({"type": "deposit", "client": "1", "tx": "2", "amount": "1.25"})
        assert record.amount == Decimal("1.25")

    def test_parse_row_missing_amount_key(self):
        record = parse_row({"type": "dispute", "client": "1", "tx": "2"})
        assert record.amount is None


class TestOpenTransactions:
    def test_open_file(self, tmp_path):
        path = tmp_path / "transactions.csv"
        path.write_text("type,client,tx,amount\ndeposit,1,1,1.0\n")

        with open_transactions(path) as records:
            assert [r.tx for r in records] == [1]

    def test_missing_file(self, tmp_path):
        with pytest.raises(InputFileError):
            with open_transactions(tmp_path / "missing.csv"):
                pass

"""Tests for Celery tasks."""
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from app.models.database import Claim, ClaimStatus, Remittance, RemittanceStatus
from app.services.queue.tasks import process_remittance_file
from tests.factories import ClaimFactory

SAMPLE_835 = """ST*835*0001~
BPR*I*500.00*C*ACH*CCP*01*999999999*DA*123456*1512345678**01*999988880*DA*98765*20241220~
TRN*1*EFT20241220*1512345678~
N1*PR*BLUE CROSS*XV*BCBS01~
CLP*CLMTASK1*1*500.00*500.00*0.00~
SE*6*0001~"""


@pytest.mark.unit
@pytest.mark.integration
class TestProcessRemittanceFile:
    """Test process_remittance_file task."""

    def test_process_content(self, db_session):
        claim_id = ClaimFactory(claim_number="CLMTASK1", status=ClaimStatus.SUBMITTED).id

        with patch("app.services.queue.tasks.SessionLocal") as mock_session_local:
            mock_session_local.return_value = db_session

            result = process_remittance_file.run(file_content=SAMPLE_835, filename="era_20241220.835")

        assert result["success"] is True
        assert result["filename"] == "era_20241220.835"
        assert result["claims_processed"] == 1
        assert result["remittance_number"] == "EFT20241220"

        claim = db_session.get(Claim, claim_id)
        assert claim.status == ClaimStatus.PAID
        assert claim.total_paid == Decimal("500.00")

    def test_process_file_path_keeps_reference(self, db_session, tmp_path):
        path = tmp_path / "upload.835"
        path.write_text(SAMPLE_835, encoding="utf-8")

        with patch("app.services.queue.tasks.SessionLocal") as mock_session_local:
            mock_session_local.return_value = db_session

            result = process_remittance_file.run(file_path=str(path))

        assert result["filename"] == "upload.835"
        remittance = db_session.get(Remittance, result["remittance_id"])
        assert remittance.file_path == str(path)
        assert path.exists()

    def test_parse_failure_is_a_result_not_an_exception(self, db_session):
        with patch("app.services.queue.tasks.SessionLocal") as mock_session_local:
            mock_session_local.return_value = db_session

            result = process_remittance_file.run(
                file_content="CLP*CLM1*1*not-money*0*0", filename="bad.835"
            )

        assert result["success"] is False
        assert result["code"] == "PARSE_FAILURE"
        remittance = db_session.get(Remittance, result["remittance_id"])
        assert remittance.processing_status == RemittanceStatus.ERROR


@pytest.mark.unit
class TestProcessRemittanceFileErrorHandling:
    def test_no_file_content_or_path(self):
        with pytest.raises(ValueError, match="Either file_content or file_path"):
            process_remittance_file.run(filename="x.835")

    def test_both_file_content_and_path(self, tmp_path):
        with pytest.raises(ValueError, match="Cannot provide both"):
            process_remittance_file.run(file_content=SAMPLE_835, file_path=str(tmp_path / "x.835"))

    def test_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            process_remittance_file.run(file_path=str(tmp_path / "missing.835"))

    def test_unexpected_error_rolls_back_and_reraises(self):
        mock_db = MagicMock()
        with patch("app.services.queue.tasks.SessionLocal", return_value=mock_db), patch(
            "app.services.queue.tasks.RemittanceProcessor"
        ) as mock_processor, patch("app.services.queue.tasks.capture_exception") as mock_capture, patch(
            "app.services.queue.tasks.settings"
        ) as mock_settings:
            mock_settings.enable_alerts = True
            mock_processor.return_value.process_file.side_effect = RuntimeError("database went away")

            with pytest.raises(RuntimeError, match="database went away"):
                process_remittance_file.run(file_content=SAMPLE_835, filename="era.835")

        mock_db.rollback.assert_called_once()
        mock_db.close.assert_called_once()
        mock_capture.assert_called_once()

    def test_session_closed_after_success(self):
        mock_db = MagicMock()
        with patch("app.services.queue.tasks.SessionLocal", return_value=mock_db), patch(
            "app.services.queue.tasks.RemittanceProcessor"
        ) as mock_processor:
            mock_processor.return_value.process_file.return_value = {"success": True, "remittance_id": 7}

            result = process_remittance_file.run(file_content=SAMPLE_835, filename="era.835")

        assert result["remittance_id"] == 7
        mock_db.close.assert_called_once()
        mock_db.rollback.assert_not_called()

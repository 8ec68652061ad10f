"""End-to-end tests of the assembled pipeline."""

import json

import pytest

from compliance_checker.core.compliance_assessor import ComplianceAssessor
from compliance_checker.core.evaluator import NOT_CONFIGURED_REASONING
from compliance_checker.models.check_result import CheckStatus, RunStatus
from compliance_checker.utils.exceptions import DocumentNotProcessedError, RunNotFoundError

from conftest import FakeCompletionProvider


@pytest.fixture
def checklist_file(tmp_path):
    path = tmp_path / "checklist.json"
    path.write_text(json.dumps({
        "sheets": [{
            "sheetName": "Balans",
            "items": [
                {"checkId": "BAL-001", "checkText": "The balance sheet presents the assets and liabilities."},
                {"checkId": "BAL-002", "checkText": "Provisions are stated separately with their nature."},
            ],
        }],
    }))
    return path


async def prepare(assessor, checklist_file, sample_pages):
    await assessor.load_checklist(str(checklist_file))
    await assessor.register_document("doc-1", "annual-report.pdf")
    await assessor.process_document("doc-1", sample_pages)


@pytest.mark.asyncio
async def test_assessment_without_api_key(config, checklist_file, sample_pages):
    assessor = ComplianceAssessor(config)
    await prepare(assessor, checklist_file, sample_pages)

    report = await assessor.assess_compliance("doc-1", "Balans")

    assert report.run.status == RunStatus.COMPLETED
    assert [r.checklist_item_id for r in report.results] == ["Balans:1", "Balans:2"]
    assert {r.reasoning for r in report.results} == {NOT_CONFIGURED_REASONING}
    assert report.summary.unknown == 2


@pytest.mark.asyncio
async def test_assessment_with_completion_provider(config, checklist_file, sample_pages, passing_response):
    assessor = ComplianceAssessor(config, completion_provider=FakeCompletionProvider(response=passing_response))
    await prepare(assessor, checklist_file, sample_pages)

    report = await assessor.assess_compliance("doc-1", "Balans")

    assert report.summary.passed == 2
    assert all(r.status == CheckStatus.PASS for r in report.results)

    stats = assessor.get_assessment_statistics()
    assert stats["total_assessments"] == 1
    assert stats["last_assessment"]["status"] == "completed"
    assert stats["retrieval_statistics"]["keyword_retrievals"] == 2
    assert "openai_api_key" not in stats["model_configuration"]


@pytest.mark.asyncio
async def test_unprocessed_document_is_rejected(config, checklist_file):
    assessor = ComplianceAssessor(config)
    await assessor.load_checklist(str(checklist_file))
    await assessor.register_document("doc-1")

    with pytest.raises(DocumentNotProcessedError):
        await assessor.start_check("doc-1", "Balans")


@pytest.mark.asyncio
async def test_unsupported_checklist_format(config, tmp_path):
    path = tmp_path / "checklist.csv"
    path.write_text("checkId,checkText\n")

    with pytest.raises(ValueError):
        await ComplianceAssessor(config).load_checklist(str(path))


@pytest.mark.asyncio
async def test_report_for_unknown_run(config):
    with pytest.raises(RunNotFoundError):
        await ComplianceAssessor(config).get_report("missing")

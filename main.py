"""CodeLens - Entry Point"""

import asyncio
import json
import os
import sys
from pathlib import Path
from typing import List

import structlog

from codelens.core.logging.logger import setup_production_logging, setup_dev_logging
from codelens.core.config.container import setup_container
from codelens.infrastructure.adapters.ai.models import AnalysisRequest, AnalysisType

logger = structlog.get_logger()

DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"

EXTENSION_LANGUAGES = {
    '.py': 'python',
    '.ts': 'typescript',
    '.tsx': 'typescript',
    '.js': 'javascript',
    '.go': 'go',
    '.java': 'java',
    '.rs': 'rust',
    '.rb': 'ruby',
}

USAGE = "Usage: python main.py FILE [FILE ...]"


def parse_analysis_type(value: str) -> AnalysisType:
    """Map CODELENS_ANALYSIS_TYPE to AnalysisType, listing valid choices on error"""
    try:
        return AnalysisType(value.strip().lower())
    except ValueError:
        choices = ", ".join(t.value for t in AnalysisType)
        raise ValueError(f"Unknown analysis type '{value}' (expected one of: {choices})")


def build_requests(paths, analysis_type: AnalysisType) -> List[AnalysisRequest]:
    """
    One AnalysisRequest per readable UTF-8 file.

    Missing, unreadable or undecodable paths are logged and skipped.
    """
    requests = []
    for raw_path in paths:
        path = Path(raw_path)
        try:
            code = path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("input_file_skipped", path=str(path), error=str(e), error_type=type(e).__name__)
            continue

        language = EXTENSION_LANGUAGES.get(path.suffix, path.suffix.lstrip('.') or 'text')
        requests.append(AnalysisRequest(
            file_name=path.name,
            language=language,
            code=code,
            analysis_type=analysis_type
        ))
    return requests


async def main(paths, analysis_type: AnalysisType) -> int:
    """Analyze the given files and print results as JSON"""
    requests = build_requests(paths, analysis_type)
    if not requests:
        logger.error("no_readable_input_files", paths=list(paths))
        return 1

    container = setup_container()

    async with container.orchestrator as orchestrator:
        job = await orchestrator.run_batch(requests)
        output = {
            'batch': job.to_dict(),
            'results': [result.to_dict() for result in job.results],
            'statistics': orchestrator.get_statistics(),
            'recent_requests': orchestrator.get_recent_requests()
        }
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    # Setup logging before anything else
    if DEV_MODE:
        setup_dev_logging()
    else:
        setup_production_logging()

    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(2)
    try:
        selected_type = parse_analysis_type(os.getenv("CODELENS_ANALYSIS_TYPE", "comprehensive"))
    except ValueError as e:
        print(f"{e}\n{USAGE}", file=sys.stderr)
        sys.exit(2)
    try:
        sys.exit(asyncio.run(main(sys.argv[1:], selected_type)))
    except KeyboardInterrupt:
        print("\nInterrupted.")

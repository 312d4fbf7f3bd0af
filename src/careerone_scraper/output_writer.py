"""
Output Writer - dataset sink plus end-of-run JSON and Markdown exports
"""

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from careerone_scraper.models import JobRecord, RunResults, SearchQuery

logger = logging.getLogger(__name__)


class DatasetSink:
    """
    Appends each saved record to a JSON Lines file as soon as it is saved.

    Records are also kept in memory for the end-of-run exports. Appends come
    from several workers, so writes are serialized.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = path
        self.records: List[JobRecord] = []
        self._lock = threading.Lock()
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("", encoding="utf-8")

    def push(self, record: JobRecord) -> None:
        line = json.dumps(record.to_output(), ensure_ascii=False)
        with self._lock:
            self.records.append(record)
            if self.path is not None:
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")

    def __len__(self) -> int:
        with self._lock:
            return len(self.records)


class OutputWriter:
    """Handles exporting the run's records to summary formats"""

    def __init__(self, config):
        self.config = config

    def _escape_md_cell(self, value: str) -> str:
        return (value or "").replace("|", "\\|").replace("\n", " ").strip()

    def _truncate(self, text: str, max_len: int) -> str:
        value = (text or "").strip()
        if len(value) <= max_len:
            return value
        return value[: max_len - 3].rstrip() + "..."

    def _ensure_output_dir(self, path: Path) -> None:
        """Create output directory if it doesn't exist"""
        path.parent.mkdir(parents=True, exist_ok=True)

    def _details_grid_table(self, records: List[JobRecord]) -> list[str]:
        cols = ["#", "Title", "Company", "Location", "Salary", "Job Type", "Posted"]
        lines = [
            "| " + " | ".join(cols) + " |",
            "| " + " | ".join(["---"] * len(cols)) + " |",
        ]
        for i, record in enumerate(records, 1):
            title = self._escape_md_cell(self._truncate(record.title or "-", 80))
            row = [
                str(i),
                f"[{title}]({record.url})",
                self._escape_md_cell(record.company or "-"),
                self._escape_md_cell(record.location or "-"),
                self._escape_md_cell(record.salary or "-"),
                self._escape_md_cell(record.job_type or "-"),
                self._escape_md_cell(record.date_posted or "-"),
            ]
            lines.append("| " + " | ".join(row) + " |")
        lines.append("")
        return lines

    def write_json(self, records: List[JobRecord], query: SearchQuery, seeds: List[str],
                   output_path: Optional[Path] = None) -> Path:
        """Export the run summary to a JSON file"""
        output_path = output_path or self.config.get_output_path('json')
        self._ensure_output_dir(output_path)

        results = RunResults(
            query=query,
            seeds=seeds,
            records=records,
            total_records=len(records),
        )
        payload = results.model_dump(mode="json")
        payload["records"] = [record.to_output() for record in records]

        with open(output_path, 'w', encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)

        logger.info(f"JSON written: {output_path}")
        print(f"💾 JSON saved: {output_path}")
        return output_path

    def write_markdown(self, records: List[JobRecord], query: SearchQuery, seeds: List[str],
                       output_path: Optional[Path] = None) -> Path:
        """Export the run to a Markdown report"""
        output_path = output_path or self.config.get_output_path('markdown')
        self._ensure_output_dir(output_path)

        timestamp = datetime.now().strftime('%Y-%m-%d %H:%M')
        lines = [
            f"# CareerOne Jobs — {timestamp}\n",
            f"**Search:** {query}  ",
            f"**Total Jobs:** {len(records)}  ",
            f"**Generated:** {timestamp}\n",
            "## Start URLs\n",
        ]
        lines.extend(f"- {seed}" for seed in seeds)
        lines.append("\n---\n")
        lines.append("## Job Listings\n")

        if not records:
            lines.append("*No jobs found.*\n")
        for i, record in enumerate(records, 1):
            lines.append(f"### {i}. {record.title or 'Untitled'}\n")
            lines.append(f"**Company:** {record.company or 'Unknown Company'}  ")
            lines.append(f"**Location:** {record.location or '-'}  ")
            if record.salary:
                lines.append(f"**Salary:** {record.salary}  ")
            if record.job_type:
                lines.append(f"**Job Type:** {record.job_type}  ")
            if record.date_posted:
                lines.append(f"**Posted:** {record.date_posted}  ")
            lines.append(f"**Link:** [{record.title or record.url}]({record.url})\n")
            if record.description_text:
                snippet = record.description_text[:300]
                more = "..." if len(record.description_text) > 300 else ""
                lines.append(f"> {snippet}{more}\n")
            lines.append("")

        lines.append("---\n")
        lines.append("## Job Details Grid\n")
        lines.extend(self._details_grid_table(records))
        lines.append("\n---\n")
        lines.append("*Generated by CareerOne Scraper*")

        with open(output_path, 'w', encoding="utf-8") as f:
            f.write('\n'.join(lines))

        logger.info(f"Markdown written: {output_path}")
        print(f"📝 Markdown saved: {output_path}")
        return output_path

    def write_all(self, records: List[JobRecord], query: SearchQuery, seeds: List[str]) -> dict:
        """Write all summary formats"""
        files = {'json': self.write_json(records, query, seeds)}
        if self.config.is_markdown_enabled():
            files['markdown'] = self.write_markdown(records, query, seeds)
        return files

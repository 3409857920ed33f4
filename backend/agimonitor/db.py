from __future__ import annotations

import json
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from agimonitor.models.analysis import AnalysisResult, LastValidation, ScoreBreakdown, Severity
from agimonitor.models.documents import Document
from agimonitor.models.evidence import Claim, EvidenceBundle
from agimonitor.models.jobs import AnalysisJob, JobStatus


def utc_now_iso() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat()


def _connect(db_path: Path) -> sqlite3.Connection:
    """Open a connection with row access by name and foreign keys enforced.

    IMMEDIATE isolation takes the write lock at BEGIN so concurrent writers
    queue instead of failing mid-transaction.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), timeout=30.0, isolation_level="IMMEDIATE")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: Path) -> None:
    with _connect(db_path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS crawl_results (
              id TEXT PRIMARY KEY,
              source TEXT NOT NULL,
              url TEXT NOT NULL,
              canonical_url TEXT NOT NULL,
              title TEXT NOT NULL,
              content TEXT NOT NULL,
              content_hash TEXT NOT NULL,
              language TEXT NOT NULL DEFAULT 'en',
              published_at_utc TEXT,
              fetched_at_utc TEXT NOT NULL,
              evidence_json TEXT,
              UNIQUE(source, url, title)
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_crawl_fetched ON crawl_results(fetched_at_utc)")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS evidence_claims (
              id TEXT PRIMARY KEY,
              crawl_id TEXT NOT NULL REFERENCES crawl_results(id) ON DELETE CASCADE,
              claim TEXT NOT NULL,
              evidence TEXT NOT NULL,
              benchmark TEXT,
              metric TEXT,
              value REAL,
              delta REAL,
              unit TEXT,
              tags_json TEXT NOT NULL DEFAULT '[]',
              created_at_utc TEXT NOT NULL,
              UNIQUE(crawl_id, claim)
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS analysis_results (
              id TEXT PRIMARY KEY,
              crawl_id TEXT NOT NULL UNIQUE REFERENCES crawl_results(id) ON DELETE CASCADE,
              score REAL NOT NULL,
              model_score REAL NOT NULL DEFAULT 0,
              heuristic_score REAL NOT NULL DEFAULT 0,
              secrecy_boost REAL NOT NULL DEFAULT 0,
              corroboration_penalty REAL NOT NULL DEFAULT 0,
              confidence REAL NOT NULL DEFAULT 0,
              severity TEXT NOT NULL DEFAULT 'none',
              indicators_json TEXT NOT NULL DEFAULT '[]',
              cross_references_json TEXT NOT NULL DEFAULT '[]',
              explanation TEXT NOT NULL DEFAULT '',
              evidence_quality TEXT NOT NULL DEFAULT 'speculative',
              requires_verification INTEGER NOT NULL DEFAULT 0,
              breakdown_json TEXT NOT NULL DEFAULT '{}',
              last_validation_json TEXT,
              validated_at_utc TEXT,
              created_at_utc TEXT NOT NULL
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_analysis_created ON analysis_results(created_at_utc)")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS historical_data (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              analysis_id TEXT NOT NULL REFERENCES analysis_results(id) ON DELETE CASCADE,
              metric TEXT NOT NULL,
              value REAL NOT NULL,
              created_at_utc TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS analysis_jobs (
              job_id TEXT PRIMARY KEY,
              status TEXT NOT NULL,
              total_articles INTEGER NOT NULL DEFAULT 0,
              processed_articles INTEGER NOT NULL DEFAULT 0,
              successful_analyses INTEGER NOT NULL DEFAULT 0,
              failed_analyses INTEGER NOT NULL DEFAULT 0,
              skipped_analyses INTEGER NOT NULL DEFAULT 0,
              current_article TEXT,
              avg_batch_time_s REAL,
              estimated_time_remaining_s INTEGER,
              error TEXT,
              created_at_utc TEXT NOT NULL,
              started_at_utc TEXT,
              completed_at_utc TEXT,
              updated_at_utc TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS trend_snapshots (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              period TEXT NOT NULL,
              date_bucket TEXT NOT NULL,
              avg_score REAL NOT NULL,
              max_score REAL NOT NULL,
              min_score REAL NOT NULL,
              total_analyses INTEGER NOT NULL,
              critical_alerts INTEGER NOT NULL,
              updated_at_utc TEXT NOT NULL,
              UNIQUE(period, date_bucket)
            )
            """
        )


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


def _row_to_document(row: sqlite3.Row) -> Document:
    evidence: EvidenceBundle | None = None
    if row["evidence_json"]:
        evidence = EvidenceBundle.model_validate_json(row["evidence_json"])
    return Document(
        id=row["id"],
        source=row["source"],
        url=row["url"],
        canonical_url=row["canonical_url"],
        title=row["title"],
        content=row["content"],
        content_hash=row["content_hash"],
        language=row["language"],
        published_at=row["published_at_utc"],
        fetched_at=row["fetched_at_utc"],
        evidence=evidence,
    )


def upsert_document(db_path: Path, doc: Document) -> str:
    """Store a crawled document.

    Returns ``"inserted"``, ``"updated"`` (same identity, new content hash),
    or ``"unchanged"``.
    """
    evidence_json = doc.evidence.model_dump_json() if doc.evidence is not None else None
    with _connect(db_path) as conn:
        existing = conn.execute(
            "SELECT id, content_hash FROM crawl_results WHERE source = ? AND url = ? AND title = ?",
            (doc.source, doc.url, doc.title),
        ).fetchone()
        if existing is None:
            conn.execute(
                """
                INSERT INTO crawl_results(
                  id, source, url, canonical_url, title, content, content_hash, language,
                  published_at_utc, fetched_at_utc, evidence_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    doc.id,
                    doc.source,
                    doc.url,
                    doc.canonical_url,
                    doc.title,
                    doc.content,
                    doc.content_hash,
                    doc.language,
                    doc.published_at,
                    doc.fetched_at,
                    evidence_json,
                ),
            )
            return "inserted"
        if existing["content_hash"] == doc.content_hash:
            return "unchanged"
        conn.execute(
            """
            UPDATE crawl_results
            SET content = ?, content_hash = ?, language = ?, canonical_url = ?,
                published_at_utc = COALESCE(?, published_at_utc),
                fetched_at_utc = ?, evidence_json = ?
            WHERE id = ?
            """,
            (
                doc.content,
                doc.content_hash,
                doc.language,
                doc.canonical_url,
                doc.published_at,
                doc.fetched_at,
                evidence_json,
                existing["id"],
            ),
        )
        return "updated"


def get_document(db_path: Path, document_id: str) -> Document | None:
    with _connect(db_path) as conn:
        row = conn.execute("SELECT * FROM crawl_results WHERE id = ?", (document_id,)).fetchone()
    return _row_to_document(row) if row else None


def list_unanalyzed_documents(db_path: Path, *, limit: int) -> list[Document]:
    """Documents without an analysis result, newest first."""
    with _connect(db_path) as conn:
        rows = conn.execute(
            """
            SELECT c.* FROM crawl_results c
            LEFT JOIN analysis_results a ON a.crawl_id = c.id
            WHERE a.id IS NULL
            ORDER BY c.fetched_at_utc DESC, c.rowid DESC
            LIMIT ?
            """,
            (limit,),
        ).fetchall()
    return [_row_to_document(r) for r in rows]


def list_documents(db_path: Path, *, limit: int = 200) -> list[Document]:
    with _connect(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM crawl_results ORDER BY fetched_at_utc DESC, rowid DESC LIMIT ?",
            (limit,),
        ).fetchall()
    return [_row_to_document(r) for r in rows]


def crawled_source_names(db_path: Path) -> set[str]:
    """Distinct source names in the corpus, lower-cased."""
    with _connect(db_path) as conn:
        rows = conn.execute("SELECT DISTINCT lower(source) AS name FROM crawl_results").fetchall()
    return {r["name"] for r in rows}


# ---------------------------------------------------------------------------
# Evidence claims
# ---------------------------------------------------------------------------


def upsert_evidence_claims(db_path: Path, *, document_id: str, claims: list[Claim]) -> int:
    """Store claims for a document; existing (document, claim text) pairs are kept."""
    now = utc_now_iso()
    inserted = 0
    with _connect(db_path) as conn:
        for claim in claims:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO evidence_claims(
                  id, crawl_id, claim, evidence, benchmark, metric, value, delta, unit,
                  tags_json, created_at_utc
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    uuid.uuid4().hex,
                    document_id,
                    claim.claim,
                    claim.evidence,
                    claim.benchmark,
                    claim.metric,
                    claim.value,
                    claim.delta,
                    claim.unit,
                    json.dumps(claim.tags),
                    now,
                ),
            )
            inserted += cur.rowcount
    return inserted


def list_evidence_claims(db_path: Path, *, document_id: str) -> list[Claim]:
    with _connect(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM evidence_claims WHERE crawl_id = ? ORDER BY rowid",
            (document_id,),
        ).fetchall()
    return [
        Claim(
            claim=r["claim"],
            evidence=r["evidence"],
            benchmark=r["benchmark"],
            metric=r["metric"],
            value=r["value"],
            delta=r["delta"],
            unit=r["unit"],
            tags=json.loads(r["tags_json"] or "[]"),
        )
        for r in rows
    ]


# ---------------------------------------------------------------------------
# Analysis results
# ---------------------------------------------------------------------------


def _row_to_analysis(row: sqlite3.Row) -> AnalysisResult:
    last_validation = None
    if row["last_validation_json"]:
        last_validation = LastValidation.model_validate_json(row["last_validation_json"])
    return AnalysisResult(
        id=row["id"],
        document_id=row["crawl_id"],
        score=row["score"],
        model_score=row["model_score"],
        heuristic_score=row["heuristic_score"],
        secrecy_boost=row["secrecy_boost"],
        corroboration_penalty=row["corroboration_penalty"],
        confidence=row["confidence"],
        severity=Severity.coerce(row["severity"]),
        indicators=json.loads(row["indicators_json"] or "[]"),
        cross_references=json.loads(row["cross_references_json"] or "[]"),
        explanation=row["explanation"],
        evidence_quality=row["evidence_quality"],
        requires_verification=bool(row["requires_verification"]),
        breakdown=ScoreBreakdown.model_validate_json(row["breakdown_json"] or "{}"),
        last_validation=last_validation,
        validated_at=row["validated_at_utc"],
        created_at=row["created_at_utc"],
    )


def insert_analysis(db_path: Path, result: AnalysisResult) -> bool:
    """Insert an analysis. Returns False if the document already has one."""
    with _connect(db_path) as conn:
        cur = conn.execute(
            """
            INSERT INTO analysis_results(
              id, crawl_id, score, model_score, heuristic_score, secrecy_boost,
              corroboration_penalty, confidence, severity, indicators_json,
              cross_references_json, explanation, evidence_quality,
              requires_verification, breakdown_json, created_at_utc
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(crawl_id) DO NOTHING
            """,
            (
                result.id,
                result.document_id,
                result.score,
                result.model_score,
                result.heuristic_score,
                result.secrecy_boost,
                result.corroboration_penalty,
                result.confidence,
                result.severity.value,
                json.dumps(result.indicators),
                json.dumps(result.cross_references),
                result.explanation,
                result.evidence_quality,
                1 if result.requires_verification else 0,
                result.breakdown.model_dump_json(),
                result.created_at or utc_now_iso(),
            ),
        )
        return cur.rowcount == 1


def get_analysis(db_path: Path, analysis_id: str) -> AnalysisResult | None:
    with _connect(db_path) as conn:
        row = conn.execute("SELECT * FROM analysis_results WHERE id = ?", (analysis_id,)).fetchone()
    return _row_to_analysis(row) if row else None


def get_analysis_for_document(db_path: Path, document_id: str) -> AnalysisResult | None:
    with _connect(db_path) as conn:
        row = conn.execute("SELECT * FROM analysis_results WHERE crawl_id = ?", (document_id,)).fetchone()
    return _row_to_analysis(row) if row else None


def list_analyses(db_path: Path, *, limit: int = 200) -> list[AnalysisResult]:
    with _connect(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM analysis_results ORDER BY created_at_utc DESC, rowid DESC LIMIT ?",
            (limit,),
        ).fetchall()
    return [_row_to_analysis(r) for r in rows]


def update_analysis_validation(db_path: Path, result: AnalysisResult) -> AnalysisResult:
    """Persist a re-validated analysis.

    The stored severity never decreases here, whatever the caller passes.
    """
    with _connect(db_path) as conn:
        row = conn.execute("SELECT severity FROM analysis_results WHERE id = ?", (result.id,)).fetchone()
        if row is None:
            raise KeyError(result.id)
        stored = Severity.coerce(row["severity"])
        severity = result.severity if result.severity.rank >= stored.rank else stored
        conn.execute(
            """
            UPDATE analysis_results
            SET score = ?, model_score = ?, heuristic_score = ?, secrecy_boost = ?,
                corroboration_penalty = ?, confidence = ?, severity = ?,
                indicators_json = ?, requires_verification = ?, breakdown_json = ?,
                last_validation_json = ?, validated_at_utc = ?
            WHERE id = ?
            """,
            (
                result.score,
                result.model_score,
                result.heuristic_score,
                result.secrecy_boost,
                result.corroboration_penalty,
                result.confidence,
                severity.value,
                json.dumps(result.indicators),
                1 if result.requires_verification else 0,
                result.breakdown.model_dump_json(),
                result.last_validation.model_dump_json() if result.last_validation else None,
                result.validated_at,
                result.id,
            ),
        )
    return result.model_copy(update={"severity": severity})


def insert_historical_metrics(db_path: Path, *, analysis_id: str, metrics: dict[str, float]) -> None:
    now = utc_now_iso()
    with _connect(db_path) as conn:
        conn.executemany(
            "INSERT INTO historical_data(analysis_id, metric, value, created_at_utc) VALUES (?, ?, ?, ?)",
            [(analysis_id, name, float(value), now) for name, value in metrics.items()],
        )


def list_historical_metrics(db_path: Path, *, analysis_id: str) -> dict[str, float]:
    with _connect(db_path) as conn:
        rows = conn.execute(
            "SELECT metric, value FROM historical_data WHERE analysis_id = ? ORDER BY id",
            (analysis_id,),
        ).fetchall()
    return {r["metric"]: r["value"] for r in rows}


def scores_since(db_path: Path, since_utc: str) -> list[tuple[float, Severity]]:
    with _connect(db_path) as conn:
        rows = conn.execute(
            "SELECT score, severity FROM analysis_results WHERE created_at_utc >= ?",
            (since_utc,),
        ).fetchall()
    return [(float(r["score"]), Severity.coerce(r["severity"])) for r in rows]


# ---------------------------------------------------------------------------
# Analysis jobs
# ---------------------------------------------------------------------------


def _row_to_job(row: sqlite3.Row) -> AnalysisJob:
    return AnalysisJob(
        job_id=row["job_id"],
        status=JobStatus(row["status"]),
        total_articles=row["total_articles"],
        processed_articles=row["processed_articles"],
        successful_analyses=row["successful_analyses"],
        failed_analyses=row["failed_analyses"],
        skipped_analyses=row["skipped_analyses"],
        current_article=row["current_article"],
        avg_batch_time_s=row["avg_batch_time_s"],
        estimated_time_remaining_s=row["estimated_time_remaining_s"],
        error=row["error"],
        created_at_utc=row["created_at_utc"],
        started_at_utc=row["started_at_utc"],
        completed_at_utc=row["completed_at_utc"],
        updated_at_utc=row["updated_at_utc"],
    )


def create_job(db_path: Path, *, job_id: str | None = None) -> AnalysisJob:
    job_id = job_id or uuid.uuid4().hex
    now = utc_now_iso()
    with _connect(db_path) as conn:
        conn.execute(
            """
            INSERT INTO analysis_jobs(job_id, status, created_at_utc, updated_at_utc)
            VALUES (?, ?, ?, ?)
            """,
            (job_id, JobStatus.QUEUED.value, now, now),
        )
        row = conn.execute("SELECT * FROM analysis_jobs WHERE job_id = ?", (job_id,)).fetchone()
    return _row_to_job(row)


def get_job(db_path: Path, job_id: str) -> AnalysisJob | None:
    with _connect(db_path) as conn:
        row = conn.execute("SELECT * FROM analysis_jobs WHERE job_id = ?", (job_id,)).fetchone()
    return _row_to_job(row) if row else None


def latest_job(db_path: Path) -> AnalysisJob | None:
    with _connect(db_path) as conn:
        row = conn.execute(
            "SELECT * FROM analysis_jobs ORDER BY created_at_utc DESC, rowid DESC LIMIT 1"
        ).fetchone()
    return _row_to_job(row) if row else None


def list_jobs_with_status(db_path: Path, statuses: list[JobStatus]) -> list[AnalysisJob]:
    placeholders = ",".join("?" for _ in statuses)
    with _connect(db_path) as conn:
        rows = conn.execute(
            f"SELECT * FROM analysis_jobs WHERE status IN ({placeholders}) ORDER BY created_at_utc, rowid",
            [s.value for s in statuses],
        ).fetchall()
    return [_row_to_job(r) for r in rows]


_JOB_FIELDS = frozenset({
    "status",
    "total_articles",
    "processed_articles",
    "successful_analyses",
    "failed_analyses",
    "skipped_analyses",
    "current_article",
    "avg_batch_time_s",
    "estimated_time_remaining_s",
    "error",
    "started_at_utc",
    "completed_at_utc",
})


def update_job(db_path: Path, job_id: str, **fields: Any) -> None:
    """Update job progress fields. Unknown field names raise ValueError."""
    unknown = set(fields) - _JOB_FIELDS
    if unknown:
        raise ValueError(f"Unknown job fields: {sorted(unknown)}")
    if "status" in fields and isinstance(fields["status"], JobStatus):
        fields["status"] = fields["status"].value
    fields["updated_at_utc"] = utc_now_iso()
    assignments = ", ".join(f"{name} = ?" for name in fields)
    with _connect(db_path) as conn:
        conn.execute(
            f"UPDATE analysis_jobs SET {assignments} WHERE job_id = ?",
            [*fields.values(), job_id],
        )


# ---------------------------------------------------------------------------
# Trend snapshots
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrendSnapshotRow:
    period: str
    date_bucket: str
    avg_score: float
    max_score: float
    min_score: float
    total_analyses: int
    critical_alerts: int
    updated_at_utc: str


def upsert_trend_snapshot(
    db_path: Path,
    *,
    period: str,
    date_bucket: str,
    avg_score: float,
    max_score: float,
    min_score: float,
    total_analyses: int,
    critical_alerts: int,
) -> None:
    with _connect(db_path) as conn:
        conn.execute(
            """
            INSERT INTO trend_snapshots(
              period, date_bucket, avg_score, max_score, min_score,
              total_analyses, critical_alerts, updated_at_utc
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(period, date_bucket) DO UPDATE SET
              avg_score = excluded.avg_score,
              max_score = excluded.max_score,
              min_score = excluded.min_score,
              total_analyses = excluded.total_analyses,
              critical_alerts = excluded.critical_alerts,
              updated_at_utc = excluded.updated_at_utc
            """,
            (period, date_bucket, avg_score, max_score, min_score, total_analyses, critical_alerts, utc_now_iso()),
        )


def list_trend_snapshots(db_path: Path, *, period: str, limit: int = 30) -> list[TrendSnapshotRow]:
    with _connect(db_path) as conn:
        rows = conn.execute(
            """
            SELECT period, date_bucket, avg_score, max_score, min_score,
                   total_analyses, critical_alerts, updated_at_utc
            FROM trend_snapshots WHERE period = ?
            ORDER BY date_bucket DESC LIMIT ?
            """,
            (period, limit),
        ).fetchall()
    return [TrendSnapshotRow(**dict(r)) for r in rows]

"""SQLite schema for review history.

Three tables: pull_requests, code_reviews (one row per review run) and
review_findings (individual findings of a review). The database tool only
reads from them.
"""

PULL_REQUESTS_DDL = """
CREATE TABLE IF NOT EXISTS pull_requests (
    id INTEGER PRIMARY KEY,
    title TEXT NOT NULL,
    author TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'OPEN',
    review_score REAL,
    source_branch TEXT,
    target_branch TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_pull_requests_author ON pull_requests(author);
"""

CODE_REVIEWS_DDL = """
CREATE TABLE IF NOT EXISTS code_reviews (
    id INTEGER PRIMARY KEY,
    pull_request_id INTEGER NOT NULL REFERENCES pull_requests(id),
    review_type TEXT NOT NULL,
    overall_score REAL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_code_reviews_pr ON code_reviews(pull_request_id);
"""

REVIEW_FINDINGS_DDL = """
CREATE TABLE IF NOT EXISTS review_findings (
    id INTEGER PRIMARY KEY,
    review_id INTEGER NOT NULL REFERENCES code_reviews(id),
    severity TEXT NOT NULL,
    category TEXT NOT NULL,
    file_path TEXT,
    message TEXT
);
CREATE INDEX IF NOT EXISTS idx_review_findings_review ON review_findings(review_id);
"""

REVIEW_SCHEMA = PULL_REQUESTS_DDL + CODE_REVIEWS_DDL + REVIEW_FINDINGS_DDL

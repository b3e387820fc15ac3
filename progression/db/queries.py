"""
Centralized SQL Queries for the progression engine.

Aggregate and reporting queries shared by the services, the CLI and the
integrity checks. Row-level reads and writes go through the ORM.

Usage:
    from progression.db.queries import SUM_COMPLETED_XP

    total = session.execute(text(SUM_COMPLETED_XP), {"user_id": user_id}).scalar_one()
"""

from __future__ import annotations

# =============================================================================
# XP AGGREGATES
# =============================================================================

# Source of truth for a learner's XP
SUM_COMPLETED_XP = """
    SELECT COALESCE(SUM(xp_earned), 0)
    FROM user_progress
    WHERE user_id = :user_id
      AND status = 'completed'
"""

# Users whose cached total disagrees with their completed progress rows
FIND_XP_TOTAL_DRIFT = """
    SELECT t.user_id, t.total_xp AS cached, COALESCE(sub.actual, 0) AS actual
    FROM user_xp_totals t
    LEFT JOIN (
        SELECT user_id, SUM(xp_earned) AS actual
        FROM user_progress
        WHERE status = 'completed'
        GROUP BY user_id
    ) sub ON sub.user_id = t.user_id
    WHERE t.total_xp != COALESCE(sub.actual, 0)
    UNION ALL
    SELECT up.user_id, 0 AS cached, SUM(up.xp_earned) AS actual
    FROM user_progress up
    WHERE up.status = 'completed'
      AND NOT EXISTS (SELECT 1 FROM user_xp_totals t WHERE t.user_id = up.user_id)
    GROUP BY up.user_id
    HAVING SUM(up.xp_earned) != 0
"""

# =============================================================================
# UNLOCK QUERIES
# =============================================================================

# XP-threshold modules now within reach that the learner has never touched.
# Prerequisite and sequential modules are deliberately not reported.
FIND_UNTOUCHED_THRESHOLD_MODULES = """
    SELECT m.id
    FROM modules m
    JOIN topics t ON t.id = m.topic_id
    WHERE m.unlock_policy = 'xp_threshold'
      AND COALESCE(m.unlock_value, 0) <= :total_xp
      AND NOT EXISTS (
          SELECT 1
          FROM user_progress up
          JOIN pages p ON p.id = up.page_id
          WHERE p.module_id = m.id
            AND up.user_id = :user_id
      )
    ORDER BY t.sort_order, m.sort_order, m.id
"""

# =============================================================================
# DASHBOARD QUERIES
# =============================================================================

MODULE_PROGRESS = """
    SELECT
        COUNT(p.id) AS total_pages,
        COUNT(up.id) AS completed_pages,
        COALESCE(SUM(p.xp_value), 0) AS xp_available,
        COALESCE(SUM(up.xp_earned), 0) AS xp_earned
    FROM pages p
    LEFT JOIN user_progress up
        ON up.page_id = p.id
       AND up.user_id = :user_id
       AND up.status = 'completed'
    WHERE p.module_id = :module_id
"""

NEXT_ATTEMPT_NUMBER = """
    SELECT COALESCE(MAX(attempt_number), 0) + 1
    FROM quiz_attempts
    WHERE user_id = :user_id
      AND quiz_content_id = :quiz_content_id
"""

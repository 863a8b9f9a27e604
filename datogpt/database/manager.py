"""
Database manager for DatoGPT.

This module keeps a DuckDB log of every oracle call and every generated asset,
so a generation run can be inspected and its prompts reproduced afterwards.
"""

import duckdb
import logging
from typing import List, Optional, Dict
from datetime import datetime


ORACLE_CALL_COLUMNS = [
    "call_id",
    "purpose",
    "field_name",
    "model_name",
    "prompt",
    "raw_response",
    "success",
    "error_message",
    "execution_time_ms",
    "called_at",
]

GENERATED_ASSET_COLUMNS = [
    "asset_id",
    "prompt",
    "revised_prompt",
    "filename",
    "created_at",
]


class DatabaseManager:
    """
    Manages the DuckDB database holding the oracle call log.
    """

    def __init__(self, db_path: str = "datogpt.db"):
        """
        Initialize the database manager.

        Args:
            db_path: Path to the DuckDB database file (":memory:" for a throwaway log)
        """
        self.db_path = db_path
        self.connection = None

    def connect(self):
        """Establish connection to the database."""
        self.connection = duckdb.connect(self.db_path)

    def disconnect(self):
        """Close the database connection."""
        if self.connection:
            self.connection.close()
            self.connection = None

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()

    def _require_connection(self):
        if not self.connection:
            raise RuntimeError("Database connection not established")

    def initialize_database(self):
        """
        Create all necessary tables if they don't exist.
        """
        self._require_connection()

        self.connection.execute("CREATE SEQUENCE IF NOT EXISTS oracle_call_id_seq;")
        self.connection.execute("""
            CREATE TABLE IF NOT EXISTS oracle_calls (
                call_id BIGINT PRIMARY KEY DEFAULT nextval('oracle_call_id_seq'),
                purpose VARCHAR NOT NULL,
                field_name VARCHAR,
                model_name VARCHAR NOT NULL,
                prompt TEXT NOT NULL,
                raw_response TEXT NOT NULL,
                success BOOLEAN NOT NULL,
                error_message TEXT,
                execution_time_ms INTEGER,
                called_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        self.connection.execute("""
            CREATE TABLE IF NOT EXISTS generated_assets (
                asset_id VARCHAR PRIMARY KEY,
                prompt TEXT NOT NULL,
                revised_prompt TEXT,
                filename VARCHAR,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    def log_oracle_call(
        self,
        purpose: str,
        model_name: str,
        prompt: str,
        raw_response: str,
        success: bool = True,
        error_message: Optional[str] = None,
        execution_time_ms: Optional[int] = None,
        field_name: Optional[str] = None
    ) -> Optional[int]:
        """
        Log an oracle call to the database.

        Args:
            purpose: What the call was for (meta_prompt, value, block_selection, ...)
            model_name: Model the call was sent to
            prompt: The assembled system prompt
            raw_response: Raw text returned by the oracle ("" on failure)
            success: Whether the call succeeded
            error_message: Error message for failed calls
            execution_time_ms: Round-trip time
            field_name: Field the call was made for (optional)

        Returns:
            The new call id
        """
        self._require_connection()

        result = self.connection.execute("""
            INSERT INTO oracle_calls (
                purpose, field_name, model_name, prompt, raw_response,
                success, error_message, execution_time_ms, called_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING call_id
        """, [
            purpose, field_name, model_name, prompt, raw_response,
            success, error_message, execution_time_ms, datetime.now()
        ]).fetchone()
        return result[0] if result else None

    def get_oracle_calls(
        self,
        purpose: Optional[str] = None,
        field_name: Optional[str] = None,
        success_only: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict]:
        """
        Retrieve oracle calls from the database, newest first.

        Args:
            purpose: Filter by call purpose (optional)
            field_name: Filter by field name (optional)
            success_only: Only return successful calls
            limit: Limit number of results

        Returns:
            List of oracle call records
        """
        self._require_connection()

        query = f"""
            SELECT {", ".join(ORACLE_CALL_COLUMNS)}
            FROM oracle_calls
            WHERE 1=1
        """
        params = []

        if purpose:
            query += " AND purpose = ?"
            params.append(purpose)

        if field_name:
            query += " AND field_name = ?"
            params.append(field_name)

        if success_only:
            query += " AND success = true"

        query += " ORDER BY called_at DESC, call_id DESC"

        if limit:
            query += " LIMIT ?"
            params.append(int(limit))

        results = self.connection.execute(query, params).fetchall()
        return [dict(zip(ORACLE_CALL_COLUMNS, row)) for row in results]

    def get_oracle_call(self, call_id: int) -> Optional[Dict]:
        """
        Get all details needed to reproduce a specific oracle call.

        Args:
            call_id: The ID of the call

        Returns:
            Dictionary with all call details or None if not found
        """
        self._require_connection()

        result = self.connection.execute(f"""
            SELECT {", ".join(ORACLE_CALL_COLUMNS)}
            FROM oracle_calls
            WHERE call_id = ?
        """, [call_id]).fetchone()

        if result:
            return dict(zip(ORACLE_CALL_COLUMNS, result))
        return None

    def log_generated_asset(
        self,
        asset_id: str,
        prompt: str,
        revised_prompt: Optional[str] = None,
        filename: Optional[str] = None
    ) -> bool:
        """
        Record an asset created by the asset generator.

        Args:
            asset_id: Id of the upload in the asset store
            prompt: Prompt the image was generated from
            revised_prompt: The oracle's revised prompt
            filename: Stored filename

        Returns:
            True if the asset was recorded, False if it was already known
        """
        self._require_connection()

        existing = self.connection.execute(
            "SELECT 1 FROM generated_assets WHERE asset_id = ? LIMIT 1",
            [asset_id]
        ).fetchone()
        if existing:
            logging.warning(f"log_generated_asset: asset '{asset_id}' already recorded")
            return False

        self.connection.execute("""
            INSERT INTO generated_assets (asset_id, prompt, revised_prompt, filename, created_at)
            VALUES (?, ?, ?, ?, ?)
        """, [asset_id, prompt, revised_prompt, filename, datetime.now()])
        return True

    def list_generated_assets(self, limit: Optional[int] = None) -> List[Dict]:
        """
        List generated assets, newest first.

        Args:
            limit: Limit number of results

        Returns:
            List of generated asset records
        """
        self._require_connection()

        query = f"SELECT {', '.join(GENERATED_ASSET_COLUMNS)} FROM generated_assets ORDER BY created_at DESC"
        params = []
        if limit:
            query += " LIMIT ?"
            params.append(int(limit))

        results = self.connection.execute(query, params).fetchall()
        return [dict(zip(GENERATED_ASSET_COLUMNS, row)) for row in results]

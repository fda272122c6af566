"""
Supabase storage client for HeysMe data.

Covers the tables the backend reads and writes:
- users: Clerk-synced user rows
- user_pages: pages users publish (and optionally share to the plaza)
- invite_codes / invite_code_usages: invite-gated registration
- coding_sessions / coding_files: files produced by the coding agent

Read helpers return None or [] when nothing matches. Write helpers log and
re-raise on failure so route handlers can map the error to a response.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Any, Tuple
from supabase import Client, create_client

from utils.files import content_checksum, detect_language, file_type
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

PLAZA_ALL_CATEGORIES = ("", "all", "全部")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _search_term(search: Optional[str]) -> str:
    # Commas and parentheses would break the PostgREST or() grammar
    if not search:
        return ""
    return search.replace(",", " ").replace("(", " ").replace(")", " ").strip()


class SupabaseClient:
    """Client for interacting with Supabase storage."""

    def __init__(self, supabase_url: str, supabase_key: str):
        """
        Initialize Supabase client.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase service role key (the backend bypasses RLS)
        """
        self.client: Client = create_client(supabase_url, supabase_key)
        logger.info(f"Initialized SupabaseClient for {supabase_url}")

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            result = self.client.table("users").select("*").eq("id", user_id).limit(1).execute()
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"Failed to fetch user {user_id}: {e}")
            raise

    def insert_user(self, record: Dict[str, Any]) -> Dict[str, Any]:
        try:
            result = self.client.table("users").insert(record).execute()
            logger.info(f"Inserted user {record.get('id')}")
            return result.data[0] if result.data else record
        except Exception as e:
            logger.error(f"Failed to insert user {record.get('id')}: {e}")
            raise

    def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            result = self.client.table("users").update(fields).eq("id", user_id).execute()
            logger.debug(f"Updated user {user_id} ({', '.join(fields)})")
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"Failed to update user {user_id}: {e}")
            raise

    def soft_delete_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Mark a user as deleted; the row is kept for page ownership history."""
        return self.update_user(user_id, {"deleted": True, "updated_at": _now()})

    def is_admin(self, user_id: str) -> bool:
        """
        Check whether a user has admin rights.

        A user is an admin when their plan is 'admin', when 'admin' is one of
        their projects, or when metadata.role is 'admin'.
        """
        user = self.get_user(user_id)
        if not user:
            return False
        metadata = user.get("metadata") or {}
        return (
            user.get("plan") == "admin"
            or "admin" in (user.get("projects") or [])
            or metadata.get("role") == "admin"
        )

    # ------------------------------------------------------------------
    # Plaza
    # ------------------------------------------------------------------

    def list_plaza_pages(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 12,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        List pages shared to the plaza, newest first.

        Args:
            category: Exact category filter; empty, 'all' or '全部' disables it
            search: Case-insensitive match against title or description
            page: 1-indexed page number
            limit: Page size

        Returns:
            Tuple of (rows with a nested 'users' object, total matching count)
        """
        offset = (page - 1) * limit
        try:
            query = (
                self.client.table("user_pages")
                .select("*, users!inner(username, full_name, avatar_url, email)", count="exact")
                .eq("is_shared_to_plaza", True)
                .order("updated_at", desc=True)
            )

            if category and category not in PLAZA_ALL_CATEGORIES:
                query = query.eq("category", category)

            term = _search_term(search)
            if term:
                query = query.or_(f"title.ilike.%{term}%,description.ilike.%{term}%")

            result = query.range(offset, offset + limit - 1).execute()
            total = result.count or 0
            logger.info(f"Plaza query returned {len(result.data)} of {total} pages")
            return result.data or [], total
        except Exception as e:
            logger.error(f"Failed to list plaza pages: {e}")
            raise

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def list_templates(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "newest",
        page: int = 1,
        limit: int = 12,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        List published templates.

        Args:
            category: Exact category filter; empty, 'all' or '全部' disables it
            search: Case-insensitive match against title or description
            sort_by: 'newest' (created_at), 'popular' (fork_count) or
                     'trending' (only templates flagged is_trending, newest first)
            page: 1-indexed page number
            limit: Page size

        Returns:
            Tuple of (rows with a nested 'users' object for the creator, total matching count)
        """
        offset = (page - 1) * limit
        try:
            query = (
                self.client.table("templates")
                .select("*, users!inner(username, full_name, avatar_url)", count="exact")
                .eq("status", "published")
            )

            if category and category not in PLAZA_ALL_CATEGORIES:
                query = query.eq("category", category)

            term = _search_term(search)
            if term:
                query = query.or_(f"title.ilike.%{term}%,description.ilike.%{term}%")

            if sort_by == "popular":
                query = query.order("fork_count", desc=True)
            elif sort_by == "trending":
                query = query.eq("is_trending", True).order("created_at", desc=True)
            else:
                query = query.order("created_at", desc=True)

            result = query.range(offset, offset + limit - 1).execute()
            total = result.count or 0
            logger.info(f"Template query ({sort_by}) returned {len(result.data)} of {total} templates")
            return result.data or [], total
        except Exception as e:
            logger.error(f"Failed to list templates: {e}")
            raise

    def insert_template(self, record: Dict[str, Any]) -> Dict[str, Any]:
        try:
            result = self.client.table("templates").insert(record).execute()
            row = result.data[0] if result.data else record
            logger.info(f"Created template {row.get('id')} by {record.get('creator_id')}")
            return row
        except Exception as e:
            logger.error(f"Failed to create template {record.get('title')}: {e}")
            raise

    # ------------------------------------------------------------------
    # Invite codes
    # ------------------------------------------------------------------

    def get_invite_code_by_code(self, code: str) -> Optional[Dict[str, Any]]:
        try:
            result = (
                self.client.table("invite_codes")
                .select("*")
                .eq("code", code.upper())
                .limit(1)
                .execute()
            )
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"Failed to look up invite code: {e}")
            raise

    def get_invite_code(self, invite_code_id: str) -> Optional[Dict[str, Any]]:
        try:
            result = (
                self.client.table("invite_codes")
                .select("*")
                .eq("id", invite_code_id)
                .limit(1)
                .execute()
            )
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"Failed to fetch invite code {invite_code_id}: {e}")
            raise

    def invite_code_exists(self, code: str) -> bool:
        return self.get_invite_code_by_code(code) is not None

    def insert_invite_code(self, record: Dict[str, Any]) -> Dict[str, Any]:
        try:
            result = self.client.table("invite_codes").insert(record).execute()
            return result.data[0] if result.data else record
        except Exception as e:
            logger.error(f"Failed to insert invite code: {e}")
            raise

    def update_invite_code(self, invite_code_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        fields = {**fields, "updated_at": _now()}
        try:
            result = (
                self.client.table("invite_codes")
                .update(fields)
                .eq("id", invite_code_id)
                .execute()
            )
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"Failed to update invite code {invite_code_id}: {e}")
            raise

    def delete_invite_code(self, invite_code_id: str) -> None:
        try:
            self.client.table("invite_codes").delete().eq("id", invite_code_id).execute()
            logger.info(f"Deleted invite code {invite_code_id}")
        except Exception as e:
            logger.error(f"Failed to delete invite code {invite_code_id}: {e}")
            raise

    def list_invite_codes(
        self,
        batch_id: Optional[str] = None,
        page: Optional[int] = None,
        limit: int = 20,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        List invite codes, newest first.

        When page is None every matching row is returned (callers that filter
        by computed status paginate themselves).
        """
        try:
            query = (
                self.client.table("invite_codes")
                .select("*", count="exact")
                .order("created_at", desc=True)
            )
            if batch_id:
                query = query.eq("batch_id", batch_id)
            if page is not None:
                offset = (page - 1) * limit
                query = query.range(offset, offset + limit - 1)
            result = query.execute()
            rows = result.data or []
            total = result.count if result.count is not None else len(rows)
            return rows, total
        except Exception as e:
            logger.error(f"Failed to list invite codes: {e}")
            raise

    def increment_invite_code_uses(self, code_row: Dict[str, Any]) -> None:
        """Bump current_uses on an invite code row we already hold."""
        new_uses = (code_row.get("current_uses") or 0) + 1
        self.update_invite_code(code_row["id"], {"current_uses": new_uses})

    def count_invite_usages(self) -> int:
        try:
            result = (
                self.client.table("invite_code_usages")
                .select("*", count="exact", head=True)
                .execute()
            )
            return result.count or 0
        except Exception as e:
            logger.error(f"Failed to count invite code usages: {e}")
            raise

    # Usages

    def find_invite_usage(
        self,
        invite_code_id: str,
        email: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Find an earlier usage of this code by the same email or user."""
        conditions = []
        if email:
            conditions.append(f"email.eq.{email}")
        if user_id:
            conditions.append(f"user_id.eq.{user_id}")
        if not conditions:
            return None
        try:
            result = (
                self.client.table("invite_code_usages")
                .select("*")
                .eq("invite_code_id", invite_code_id)
                .or_(",".join(conditions))
                .limit(1)
                .execute()
            )
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"Failed to look up invite code usage: {e}")
            raise

    def insert_invite_usage(self, record: Dict[str, Any]) -> Dict[str, Any]:
        try:
            result = self.client.table("invite_code_usages").insert(record).execute()
            return result.data[0] if result.data else record
        except Exception as e:
            logger.error(f"Failed to record invite code usage: {e}")
            raise

    def list_invite_usages(self, invite_code_id: str) -> List[Dict[str, Any]]:
        try:
            result = (
                self.client.table("invite_code_usages")
                .select("*")
                .eq("invite_code_id", invite_code_id)
                .order("used_at", desc=True)
                .execute()
            )
            return result.data or []
        except Exception as e:
            logger.error(f"Failed to list usages for invite code {invite_code_id}: {e}")
            raise

    def has_invite_usages(self, invite_code_id: str) -> bool:
        try:
            result = (
                self.client.table("invite_code_usages")
                .select("id")
                .eq("invite_code_id", invite_code_id)
                .limit(1)
                .execute()
            )
            return bool(result.data)
        except Exception as e:
            logger.error(f"Failed to check usages for invite code {invite_code_id}: {e}")
            raise

    def find_unlinked_usage_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """
        Find a usage recorded before sign-up that has no user attached yet.

        The invite code row is embedded under 'invite_codes' so its
        permissions can be applied to the new user.
        """
        try:
            result = (
                self.client.table("invite_code_usages")
                .select("*, invite_codes(code, permissions)")
                .eq("email", email)
                .is_("user_id", "null")
                .order("used_at", desc=True)
                .limit(1)
                .execute()
            )
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"Failed to look up pending invite usage for {email}: {e}")
            raise

    def link_usage_to_user(self, usage: Dict[str, Any], user_id: str) -> None:
        metadata = {
            **(usage.get("metadata") or {}),
            "user_linked_at": _now(),
            "registration_completed": True,
        }
        try:
            (
                self.client.table("invite_code_usages")
                .update({"user_id": user_id, "metadata": metadata})
                .eq("id", usage["id"])
                .execute()
            )
            logger.info(f"Linked invite usage {usage['id']} to user {user_id}")
        except Exception as e:
            logger.error(f"Failed to link invite usage {usage.get('id')}: {e}")
            raise

    # ------------------------------------------------------------------
    # Coding sessions and files
    # ------------------------------------------------------------------

    def get_coding_session(self, session_id: str, include_files: bool = True) -> Optional[Dict[str, Any]]:
        try:
            result = (
                self.client.table("coding_sessions")
                .select("*")
                .eq("session_id", session_id)
                .limit(1)
                .execute()
            )
            if not result.data:
                return None
            session = result.data[0]
            if include_files:
                session["files"] = self.get_coding_files(session_id)
            return session
        except Exception as e:
            logger.error(f"Failed to fetch coding session {session_id}: {e}")
            raise

    def upsert_coding_session(
        self,
        user_id: str,
        session_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        status: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Create or update the coding session row.

        Existing title, description and status are kept unless new values are
        given; metadata is merged over what is stored. The owner of an existing
        row never changes.

        Raises:
            PermissionError: If the session belongs to another user
        """
        existing = self.get_coding_session(session_id, include_files=False) or {}
        if existing.get("user_id") and existing["user_id"] != user_id:
            raise PermissionError(f"Coding session {session_id} belongs to another user")
        merged_metadata = {
            "mode": "coding",
            "agent_name": "CodingAgent",
            **(existing.get("metadata") or {}),
            **(metadata or {}),
        }
        record = {
            "user_id": user_id,
            "session_id": session_id,
            "title": title or existing.get("title") or "Coding project",
            "description": description if description is not None else existing.get("description"),
            "status": status or existing.get("status") or "active",
            "metadata": merged_metadata,
            "updated_at": _now(),
        }
        try:
            result = (
                self.client.table("coding_sessions")
                .upsert(record, on_conflict="session_id")
                .execute()
            )
            return result.data[0] if result.data else record
        except Exception as e:
            logger.error(f"Failed to save coding session {session_id}: {e}")
            raise

    def get_coding_files(self, session_id: str) -> List[Dict[str, Any]]:
        try:
            result = (
                self.client.table("coding_files")
                .select("*")
                .eq("session_id", session_id)
                .neq("status", "deleted")
                .order("path")
                .execute()
            )
            return result.data or []
        except Exception as e:
            logger.error(f"Failed to list files for coding session {session_id}: {e}")
            raise

    def get_coding_file(self, session_id: str, path: str, include_deleted: bool = False) -> Optional[Dict[str, Any]]:
        try:
            query = (
                self.client.table("coding_files")
                .select("*")
                .eq("session_id", session_id)
                .eq("path", path)
            )
            if not include_deleted:
                query = query.neq("status", "deleted")
            result = query.limit(1).execute()
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"Failed to fetch {path} in coding session {session_id}: {e}")
            raise

    def upsert_coding_file(
        self,
        session_id: str,
        path: str,
        content: str,
        language: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Save a file produced by the coding agent.

        The version increases when the content checksum changes or a deleted
        file comes back:
        - new file: version 1, status 'created'
        - re-created after deletion: version + 1, status 'created'
        - changed file: version + 1, status 'modified'
        - unchanged file: same version, status 'synced'

        Returns:
            The stored file row
        """
        checksum = content_checksum(content)
        existing = self.get_coding_file(session_id, path, include_deleted=True)

        if existing is None:
            version, status = 1, "created"
        elif existing.get("status") == "deleted":
            version, status = (existing.get("version") or 1) + 1, "created"
        elif existing.get("checksum") != checksum:
            version, status = (existing.get("version") or 1) + 1, "modified"
        else:
            version, status = existing.get("version") or 1, "synced"

        record = {
            "session_id": session_id,
            "path": path,
            "content": content,
            "language": language or detect_language(path),
            "size": len(content),
            "checksum": checksum,
            "version": version,
            "status": status,
            "metadata": {
                "type": file_type(path),
                **((existing or {}).get("metadata") or {}),
                **(metadata or {}),
            },
            "updated_at": _now(),
        }
        try:
            result = (
                self.client.table("coding_files")
                .upsert(record, on_conflict="session_id,path")
                .execute()
            )
            logger.debug(f"Saved {path} (session={session_id}, version={version}, status={status})")
            return result.data[0] if result.data else record
        except Exception as e:
            logger.error(f"Failed to save {path} in coding session {session_id}: {e}")
            raise

    def delete_coding_file(self, session_id: str, path: str) -> bool:
        """Mark a file deleted. Returns False if it did not exist."""
        if self.get_coding_file(session_id, path) is None:
            return False
        try:
            (
                self.client.table("coding_files")
                .update({"status": "deleted", "updated_at": _now()})
                .eq("session_id", session_id)
                .eq("path", path)
                .execute()
            )
            logger.info(f"Deleted {path} in coding session {session_id}")
            return True
        except Exception as e:
            logger.error(f"Failed to delete {path} in coding session {session_id}: {e}")
            raise

    def get_project_stats(self, session_id: str) -> Dict[str, Any]:
        """
        Summarize the files of a coding session.

        Returns:
            Dict with total_files, total_size, language_breakdown, file_types
            and last_modified (latest updated_at, or None)
        """
        files = self.get_coding_files(session_id)
        languages: Dict[str, int] = {}
        types: Dict[str, int] = {}
        last_modified = None

        for f in files:
            language = f.get("language") or "text"
            languages[language] = languages.get(language, 0) + 1
            kind = (f.get("metadata") or {}).get("type") or "other"
            types[kind] = types.get(kind, 0) + 1
            updated = f.get("updated_at")
            if updated and (last_modified is None or updated > last_modified):
                last_modified = updated

        return {
            "total_files": len(files),
            "total_size": sum(f.get("size") or 0 for f in files),
            "language_breakdown": languages,
            "file_types": types,
            "last_modified": last_modified,
        }

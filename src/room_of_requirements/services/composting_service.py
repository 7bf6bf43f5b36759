from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..domain.compost_models import (
    ComponentChunk,
    CompostingProgress,
    CompostingSession,
    ProcessedFile,
    SessionStats,
    UploadedFile,
)
from ..infrastructure.compost_store import CompostingSessionStore, get_compost_store
from .chunking import chunk_files
from .component_ai import ComponentEnhancer, resolve_components
from .file_processor import FileProcessor
from .openrouter import get_openrouter_client

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[CompostingProgress], None]


class SessionNotFoundError(LookupError):
    pass


class NoFilesToProcessError(ValueError):
    pass


class CompostingService:
    """Upload → describe → extract → review → complete workflow for old projects."""

    def __init__(
        self,
        store: Optional[CompostingSessionStore] = None,
        file_processor: Optional[FileProcessor] = None,
        client_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.store = store or get_compost_store()
        self.file_processor = file_processor or FileProcessor()
        self.enhancer = ComponentEnhancer(client_factory or get_openrouter_client)

    def create_session(self, project_name: str = "Untitled Project") -> CompostingSession:
        sess = self.store.create(project_name)
        logger.info("Created composting session %s (%s)", sess.id, sess.project_name)
        return sess

    def get_session(self, session_id: str) -> Optional[CompostingSession]:
        return self.store.get(session_id)

    def _require(self, session_id: str) -> CompostingSession:
        sess = self.store.get(session_id)
        if sess is None:
            raise SessionNotFoundError("Session not found")
        return sess

    def _progress(self, sess: CompostingSession, **changes: Any) -> Dict[str, Any]:
        return {"progress": sess.progress.model_copy(update=changes)}

    def process_files(
        self,
        session_id: str,
        uploads: Sequence[UploadedFile],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[ProcessedFile]:
        """Extract text from each upload; a failing file is reported and skipped.

        Successfully processed files are appended to the session's files.
        Uploaded temp files are removed either way.
        """
        notify = progress_callback or (lambda _event: None)
        sess = self._require(session_id)
        total = len(uploads)
        sess = self.store.update(
            session_id,
            status="processing",
            **self._progress(sess, total_files=total, current_step="Processing uploaded files"),
        )

        processed: List[ProcessedFile] = []
        for i, upload in enumerate(uploads):
            notify(
                CompostingProgress(
                    session_id=session_id,
                    step="processing_files",
                    progress=round(i / total * 50),
                    message=f"Processing {upload.original_name}...",
                    data={"currentFile": upload.original_name},
                )
            )
            try:
                processed.append(
                    self.file_processor.process_file(upload.path, upload.original_name, upload.mime_type)
                )
                sess = self.store.update(
                    session_id,
                    **self._progress(sess, files_processed=i + 1, current_step=f"Processed {i + 1}/{total} files"),
                )
            except Exception as exc:
                logger.error("Error processing file %s: %s", upload.original_name, exc)
                notify(
                    CompostingProgress(
                        session_id=session_id,
                        step="error",
                        progress=0,
                        message=f"Error processing {upload.original_name}: {exc}",
                        data={"error": True, "fileName": upload.original_name},
                    )
                )
            finally:
                self.file_processor.cleanup_file(upload.path)

        self.store.update(
            session_id,
            files=list(sess.files) + processed,
            **self._progress(sess, files_processed=len(processed), current_step="Files processed successfully"),
        )
        logger.info("Processed %d/%d files for composting session %s", len(processed), total, session_id)
        return processed

    def update_project_description(self, session_id: str, description: str) -> Optional[CompostingSession]:
        return self.store.update(session_id, project_description=description, status="describing")

    def extract_components(
        self, session_id: str, progress_callback: Optional[ProgressCallback] = None
    ) -> List[ComponentChunk]:
        notify = progress_callback or (lambda _event: None)
        sess = self._require(session_id)
        if not sess.files:
            raise NoFilesToProcessError("No files to process")

        sess = self.store.update(
            session_id, status="processing", **self._progress(sess, current_step="Extracting reusable components")
        )
        notify(
            CompostingProgress(
                session_id=session_id,
                step="extracting_components",
                progress=50,
                message="Analyzing content for reusable components...",
            )
        )
        try:
            basic = chunk_files(sess.files, sess.project_description)
            notify(
                CompostingProgress(
                    session_id=session_id,
                    step="ai_analysis",
                    progress=70,
                    message="Enhancing components with AI analysis...",
                )
            )
            result = self.enhancer.enhance(sess.files, sess.project_description, basic)
            components = resolve_components(result, basic)
            notify(
                CompostingProgress(
                    session_id=session_id,
                    step="ai_complete",
                    progress=90,
                    message="AI analysis complete, finalizing components...",
                )
            )
        except Exception as exc:
            logger.error("Error extracting components for session %s: %s", session_id, exc)
            notify(
                CompostingProgress(
                    session_id=session_id,
                    step="error",
                    progress=0,
                    message=f"Error extracting components: {exc}",
                    data={"error": True},
                )
            )
            raise

        self.store.update(
            session_id,
            components=components,
            status="reviewing",
            **self._progress(
                sess, components_extracted=len(components), current_step="Components extracted successfully"
            ),
        )
        notify(
            CompostingProgress(
                session_id=session_id,
                step="components_ready",
                progress=100,
                message=f"Extracted {len(components)} reusable components",
                data={"components": [c.to_wire() for c in components]},
            )
        )
        return components

    def complete_session(self, session_id: str) -> Optional[CompostingSession]:
        sess = self.store.get(session_id)
        if sess is None:
            return None
        return self.store.update(
            session_id, status="completed", **self._progress(sess, current_step="Composting completed successfully")
        )

    def list_sessions(self) -> List[CompostingSession]:
        return self.store.list()

    def delete_session(self, session_id: str) -> bool:
        return self.store.delete(session_id)

    def session_stats(self, session_id: str) -> Optional[SessionStats]:
        sess = self.store.get(session_id)
        if sess is None:
            return None
        scores = [c.reusability_score for c in sess.components]
        return SessionStats(
            session_id=session_id,
            project_name=sess.project_name,
            status=sess.status,
            files_count=len(sess.files),
            components_count=len(sess.components),
            total_words=sum(f.metadata.word_count for f in sess.files),
            average_reusability_score=round(sum(scores) / len(scores)) if scores else 0,
            created_at=sess.created_at,
            updated_at=sess.updated_at,
        )


_service: Optional[CompostingService] = None


def get_composting_service() -> CompostingService:
    global _service
    if _service is None:
        _service = CompostingService()
    return _service

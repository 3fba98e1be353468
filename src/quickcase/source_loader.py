# turns user supplied reference documents into model input parts
import fitz  # PyMuPDF
import base64
import mimetypes
from pathlib import Path
from typing import List, Dict, Any, Optional
import logging

from .config import get_settings
from .models import UploadedFile

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"


# class for reading uploaded files the way the research prompt expects them
class SourceLoader:
    # initialize with the inline size limit for pdfs
    def __init__(self, inline_pdf_max_bytes: Optional[int] = None):
        if inline_pdf_max_bytes is None:
            inline_pdf_max_bytes = get_settings().inline_pdf_max_bytes
        self.inline_pdf_max_bytes = inline_pdf_max_bytes

    # load a file from disk
    def load_file(self, path: str) -> UploadedFile:
        """Read a local file into an UploadedFile"""
        file_path = Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        mime_type = mimetypes.guess_type(file_path.name)[0] or "text/plain"
        return self.from_bytes(file_path.name, mime_type, file_path.read_bytes())

    # build an UploadedFile from raw bytes (api uploads land here)
    def from_bytes(self, name: str, mime_type: Optional[str], content: bytes) -> UploadedFile:
        """PDFs become base64 inline data, everything else is decoded as text"""
        uploaded = self._read(name, mime_type, content)
        uploaded.info = self.describe(uploaded, content)
        return uploaded

    def _read(self, name: str, mime_type: Optional[str], content: bytes) -> UploadedFile:
        is_pdf = mime_type == PDF_MIME_TYPE or name.lower().endswith(".pdf")

        if is_pdf:
            if len(content) > self.inline_pdf_max_bytes:
                # too large for an inline part, hand the model the text layer instead
                logger.warning(f"{name} is {len(content)} bytes, sending extracted text instead of inline PDF")
                return UploadedFile(
                    name=name,
                    mime_type="text/plain",
                    data=self.extract_pdf_text(content),
                    is_text=True,
                )
            return UploadedFile(
                name=name,
                mime_type=PDF_MIME_TYPE,
                data=base64.b64encode(content).decode("ascii"),
                is_text=False,
            )

        # treat everything else as text (txt, md, csv)
        return UploadedFile(
            name=name,
            mime_type="text/plain",
            data=content.decode("utf-8", errors="replace"),
            is_text=True,
        )

    # extract the text layer of a pdf page by page
    def extract_pdf_text(self, content: bytes) -> str:
        """Extract text from PDF bytes"""
        try:
            pages = []
            with fitz.open(stream=content, filetype="pdf") as doc:
                for page_num in range(doc.page_count):
                    page_text = doc[page_num].get_text().strip()
                    if page_text:
                        pages.append(f"[Page {page_num + 1}]\n{page_text}")
            return "\n\n".join(pages)
        except Exception as e:
            logger.error(f"Error extracting PDF text: {str(e)}")
            raise

    # extract metadata like title and page count from pdf bytes
    def extract_pdf_metadata(self, content: bytes) -> Dict[str, Any]:
        """Extract metadata from PDF bytes"""
        try:
            with fitz.open(stream=content, filetype="pdf") as doc:
                metadata = doc.metadata or {}
                page_count = doc.page_count

            return {
                'title': metadata.get('title', ''),
                'author': metadata.get('author', ''),
                'page_count': page_count
            }
        except Exception as e:
            logger.error(f"Error extracting PDF metadata: {str(e)}")
            return {'title': '', 'author': '', 'page_count': 0}

    # short description of a file for listings
    def describe(self, uploaded: UploadedFile, raw: Optional[bytes] = None) -> Dict[str, Any]:
        if uploaded.info:
            return uploaded.info

        info: Dict[str, Any] = {
            "name": uploaded.name,
            "mime_type": uploaded.mime_type,
            "is_text": uploaded.is_text,
        }
        if uploaded.is_text:
            info["characters"] = len(uploaded.data)
        else:
            if raw is None:
                raw = base64.b64decode(uploaded.data)
            info["bytes"] = len(raw)
            info.update(self.extract_pdf_metadata(raw))
        return info

    def load_files(self, paths: List[str]) -> List[UploadedFile]:
        return [self.load_file(path) for path in paths]

"""
Markdown vault access
"""

import asyncio
from pathlib import Path
from typing import List, Optional
from tdsync.utils.logger import logger


class VaultDocumentStore:
    """Reads and writes Markdown documents below a vault directory"""
    
    def __init__(self, root: str):
        """
        Initialize document store
        
        Args:
            root: Vault directory
        """
        self.root = Path(root)
        self.logger = logger
    
    def _resolve(self, path: str) -> Path:
        full_path = (self.root / path).resolve()
        if self.root.resolve() not in full_path.parents:
            raise ValueError(f"Document path escapes the vault: {path}")
        return full_path
    
    async def read_document(self, path: str) -> str:
        """
        Read document text
        
        Args:
            path: Vault-relative path
            
        Returns:
            Document text
        """
        return await asyncio.to_thread(self._resolve(path).read_text, encoding="utf-8")
    
    async def write_document(self, path: str, text: str):
        """Replace document text"""
        await asyncio.to_thread(self._resolve(path).write_text, text, encoding="utf-8")
        self.logger.debug(f"[Vault] Wrote {path}")
    
    async def replace_line(self, path: str, line_index: int, text: str):
        """
        Replace a single line in place
        
        Args:
            path: Vault-relative path
            line_index: Zero-based line number
            text: New line content without newline
        """
        content = await self.read_document(path)
        lines = content.split("\n")
        if not 0 <= line_index < len(lines):
            raise IndexError(f"Line {line_index} out of range for {path}")
        lines[line_index] = text
        await self.write_document(path, "\n".join(lines))
    
    def list_documents(self) -> List[str]:
        """List vault-relative paths of all Markdown documents"""
        return sorted(
            path.relative_to(self.root).as_posix()
            for path in self.root.rglob("*.md")
            if not any(part.startswith(".") for part in path.relative_to(self.root).parts)
        )
    
    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()
    
    def get_modified_time(self, path: str) -> Optional[float]:
        full_path = self._resolve(path)
        return full_path.stat().st_mtime if full_path.is_file() else None

from abc import ABC, abstractmethod
from typing import List, Optional

from docsearch.domain.models import Chunk

class ChunkingError(Exception):
    """Base exception for chunking errors."""
    pass

class ChunkingPort(ABC):
    """
    Interface (Port) para la division de texto en fragmentos (chunks) acotados.
    """

    @abstractmethod
    def chunk_text(
        self,
        text_content: str,
        page_number: Optional[int] = None,
        start_index: int = 0
    ) -> List[Chunk]:
        """
        Divide un bloque de texto en chunks de tamano maximo acotado.

        Args:
            text_content: El texto a dividir.
            page_number: Pagina de origen, se copia sin cambios a cada chunk.
            start_index: Indice del primer chunk emitido.

        Returns:
            Lista ordenada de Chunk con indices contiguos desde start_index.

        Raises:
            ChunkingError: Si la configuracion del chunker es invalida.
        """
        pass

"""
Interactive Query Loop

Prompts for what the user wants to do, embeds the answer, and prints the
closest catalog entries. An empty line, end of input, or ``exit`` ends the
loop without touching the embedder or the index.
"""

from __future__ import annotations

import logging
import sys
from typing import Callable, List, Optional, TextIO

from ..embeddings.embedder import Embedder
from ..embeddings.index import VectorIndex
from ..embeddings.models import QueryResult, NAME_FIELD, DESCRIPTION_FIELD

logger = logging.getLogger("svc.search")

PROMPT = "What would you like to do? "
HEADER = "Services that may help you do that:"
EXIT_TOKEN = "exit"


class QueryLoop:
    """
    Prompting/Terminated state machine over an input source.

    Errors from the embedder or the index are not caught; they end the loop.
    """

    def __init__(
        self,
        embedder: Embedder,
        index: VectorIndex,
        top_k: int = 3,
        read_line: Optional[Callable[[str], str]] = None,
        output: Optional[TextIO] = None,
    ) -> None:
        self._embedder = embedder
        self._index = index
        self._top_k = top_k
        self._read_line = read_line or input
        self._output = output
        self.terminated = False

    def _print(self, text: str = "") -> None:
        print(text, file=self._output if self._output is not None else sys.stdout)

    def _next_input(self) -> Optional[str]:
        try:
            line = self._read_line(PROMPT)
        except EOFError:
            return None

        if not line or line == EXIT_TOKEN:
            return None
        return line

    async def search(self, text: str) -> List[QueryResult]:
        vector = await self._embedder.embed(text)
        return await self._index.query(
            vector,
            k=self._top_k,
            project_fields=[NAME_FIELD, DESCRIPTION_FIELD],
        )

    def render(self, results: List[QueryResult]) -> None:
        self._print(HEADER)
        for result in results:
            self._print(f"Service: {result.service_name}, Score: {result.score}")
            self._print(f"Description: {result.description}")
            self._print()

    async def run(self) -> int:
        """
        Run until terminated.

        Returns
        -------
        int
            Number of queries answered.
        """
        turns = 0
        while not self.terminated:
            text = self._next_input()
            if text is None:
                self.terminated = True
                break

            results = await self.search(text)
            logger.info("Query returned %d results", len(results))
            self.render(results)
            turns += 1

        return turns

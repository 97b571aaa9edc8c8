import os
import re
import logging

logger = logging.getLogger("writer")

LINT_HEADER = "/* eslint-disable */ \n\n"
SEPARATOR = "\n\n"

_CODE_BLOCK = re.compile(r"```.*")


def remove_code_block(text: str) -> str:
    """Remove every code-fence marker and whatever follows it on the same line."""
    return _CODE_BLOCK.sub("", text)


class ContentWriter:
    """Creates or appends generated text files under a package directory."""

    def write(self, path: str, content: str, is_markdown: bool = False) -> str:
        """Write `content` to `path`, appending when the file already exists.

        New source files get the linter header and have fence markers stripped;
        Markdown is written as-is. Returns the text that was written.
        """
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)

        body = content if is_markdown else remove_code_block(content)

        if not os.path.exists(path):
            text = body if is_markdown else LINT_HEADER + body
            mode = "w"
        else:
            logger.debug(f"Appending to existing file {path}")
            text = body
            mode = "a"

        text += SEPARATOR
        with open(path, mode, encoding="utf-8") as f:
            f.write(text)
        return text

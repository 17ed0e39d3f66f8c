"""
Output Formatter
================

Ready-to-paste renderings of encoded results and batch export documents.
"""

import html
import json
import logging
from typing import Callable, Dict, List

from base_classes import ProcessingResult
from codec_pipeline.stages.mime import is_image, is_text

logger = logging.getLogger(__name__)


def data_uri(encoded: str, mime_type: str) -> str:
    return f"data:{mime_type};base64,{encoded}"


def generate_formats(encoded: str, mime_type: str) -> Dict[str, str]:
    """Format map attached to every encode result.

    ``raw`` and ``dataUri`` are always present; images add HTML, CSS and
    Markdown embeds, text adds an HTML ``<embed>``.
    """
    uri = data_uri(encoded, mime_type)
    formats = {
        'raw': encoded,
        'dataUri': uri,
    }

    if is_image(mime_type):
        formats['htmlImg'] = f'<img src="{uri}" alt="Base64 Image" />'
        formats['cssBackground'] = f"background-image: url('{uri}');"
        formats['markdown'] = f"![Base64 Image]({uri})"

    if is_text(mime_type):
        formats['htmlEmbed'] = f'<embed src="{uri}" type="{mime_type}" />'

    return formats


class OutputFormatter:
    """Render completed batch results as JSON, HTML or CSS documents"""

    def __init__(self, indent: int = 2):
        self.indent = indent
        self.format_templates: Dict[str, Callable[[List[ProcessingResult]], str]] = {
            'json': self._format_json,
            'html': self._format_html,
            'css': self._format_css,
        }

    def format_results(self, results: List[ProcessingResult], format_type: str = 'json') -> str:
        format_func = self.format_templates.get(format_type)
        if format_func is None:
            raise ValueError(f"Invalid export format: {format_type}")
        encoded = [r for r in results if r.encoded_text is not None]
        if len(encoded) != len(results):
            logger.warning(f"Skipping {len(results) - len(encoded)} result(s) without encoded text")
        return format_func(encoded)

    def _format_json(self, results: List[ProcessingResult]) -> str:
        return json.dumps([
            {
                'mimeType': r.mime_type,
                'size': r.byte_size,
                'base64': r.encoded_text,
                'isImage': r.is_image,
            }
            for r in results
        ], indent=self.indent)

    def _format_html(self, results: List[ProcessingResult]) -> str:
        items = []
        for r in results:
            if not r.is_image:
                continue
            mime = html.escape(r.mime_type)
            items.append(
                f'<div class="base64-item">\n'
                f'  <h3>Image ({mime})</h3>\n'
                f'  <img src="{data_uri(r.encoded_text, mime)}" alt="Base64 Image" style="max-width: 300px;" />\n'
                f'  <details>\n'
                f'    <summary>Base64 Data</summary>\n'
                f'    <pre>{html.escape(r.encoded_text)}</pre>\n'
                f'  </details>\n'
                f'</div>'
            )
        content = '\n'.join(items)
        return (
            "<!DOCTYPE html>\n"
            "<html>\n"
            "<head>\n"
            "  <title>Base64 Export</title>\n"
            "  <style>\n"
            "    .base64-item { margin: 20px 0; padding: 20px; border: 1px solid #ccc; }\n"
            "    pre { background: #f5f5f5; padding: 10px; overflow-x: auto; }\n"
            "  </style>\n"
            "</head>\n"
            "<body>\n"
            "  <h1>Base64 Export Results</h1>\n"
            f"{content}\n"
            "</body>\n"
            "</html>"
        )

    def _format_css(self, results: List[ProcessingResult]) -> str:
        images = [r for r in results if r.is_image]
        rules = []
        for index, r in enumerate(images, start=1):
            rules.append(
                f".base64-image-{index} {{\n"
                f"  background-image: url('{data_uri(r.encoded_text, r.mime_type)}');\n"
                f"  background-size: cover;\n"
                f"  background-repeat: no-repeat;\n"
                f"}}"
            )
        return '\n\n'.join(rules)

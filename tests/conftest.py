"""Pytest configuration and fixtures."""

import shutil
import tempfile

import pytest


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    temp_path = tempfile.mkdtemp()
    yield temp_path
    shutil.rmtree(temp_path)


@pytest.fixture
def usage_page_html():
    """Account page as served, with usage rendered into block elements."""
    return """
    <html>
      <head><title>Account</title><style>.x{color:red}</style></head>
      <body>
        <nav><a href="/">Trae</a></nav>
        <main>
          <p>You are on Pro plan</p>
          <p>Usage reset in 12 days on 2024/04/01 08:00</p>
          <section>
            <h3>Pro plan</h3>
            <div>Reset at 2024/04/01 08:00</div>
            <div><span>120</span>/<span>600</span></div>
          </section>
        </main>
        <script>window.__STATE__ = {"used": 1};</script>
      </body>
    </html>
    """

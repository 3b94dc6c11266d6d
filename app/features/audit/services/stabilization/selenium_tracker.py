import logging
from typing import List, Optional
from urllib.parse import urlsplit

from selenium.common.exceptions import WebDriverException

from app.features.audit.services.stabilization.stabilizer import PageState

logger = logging.getLogger(__name__)

# Installed before any page script runs; counts in-flight XHR/fetch calls.
TRACKER_SCRIPT = """
(function () {
  if (window.__a11yTracker) { return; }
  var pending = {};
  var seq = 0;
  window.__a11yTracker = { pending: pending };
  function start(url) { var id = ++seq; pending[id] = String(url || ''); return id; }
  function done(id) { delete pending[id]; }

  var open = XMLHttpRequest.prototype.open;
  var send = XMLHttpRequest.prototype.send;
  XMLHttpRequest.prototype.open = function (method, url) {
    this.__a11yUrl = url;
    return open.apply(this, arguments);
  };
  XMLHttpRequest.prototype.send = function () {
    var id = start(this.__a11yUrl);
    this.addEventListener('loadend', function () { done(id); });
    return send.apply(this, arguments);
  };

  if (window.fetch) {
    var originalFetch = window.fetch;
    window.fetch = function (input) {
      var id = start(typeof input === 'string' ? input : (input && input.url));
      return originalFetch.apply(this, arguments).finally(function () { done(id); });
    };
  }
})();
"""

PENDING_SCRIPT = """
var tracker = window.__a11yTracker;
var urls = tracker ? Object.keys(tracker.pending).map(function (k) { return tracker.pending[k]; }) : [];
if (document.readyState !== 'complete') { urls.push('document:' + location.pathname); }
return urls;
"""

STATE_SCRIPT = """
var body = document.body;
return {
  elements: document.getElementsByTagName('*').length,
  contentLength: body ? (body.innerText || '').length : 0,
  title: document.title || '',
  links: document.links.length
};
"""


def _as_path(url: str) -> str:
    if url.startswith('document:'):
        return url
    try:
        parsed = urlsplit(url)
    except ValueError:
        return url
    return parsed.path or url


class SeleniumRequestTracker:
    """
    In-flight request counter for a Chrome session.

    attach() must run before navigation (the script is registered through CDP
    for every new document) and detach() must run in a finally block.
    """

    def __init__(self, driver):
        self.driver = driver
        self._identifier: Optional[str] = None

    @property
    def attached(self) -> bool:
        return self._identifier is not None

    def attach(self) -> None:
        result = self.driver.execute_cdp_cmd(
            'Page.addScriptToEvaluateOnNewDocument', {'source': TRACKER_SCRIPT}
        )
        self._identifier = (result or {}).get('identifier', '')

    def detach(self) -> None:
        if self._identifier is None:
            return
        identifier, self._identifier = self._identifier, None
        try:
            self.driver.execute_cdp_cmd(
                'Page.removeScriptToEvaluateOnNewDocument', {'identifier': identifier}
            )
        except WebDriverException as e:
            logger.warning(f"Could not detach request tracker: {e}")

    def pending(self) -> List[str]:
        try:
            urls = self.driver.execute_script(PENDING_SCRIPT) or []
        except WebDriverException:
            # mid-navigation: the document itself is still in flight
            return ['document:navigating']
        return [_as_path(u) for u in urls]


class SeleniumStateReader:
    """Reads the DOM state used by the stabilization loop in one round trip."""

    def __init__(self, driver):
        self.driver = driver

    def __call__(self) -> PageState:
        try:
            data = self.driver.execute_script(STATE_SCRIPT) or {}
        except WebDriverException:
            return PageState(elements=-1, content_length=-1, title='')
        return PageState(
            elements=int(data.get('elements', 0)),
            content_length=int(data.get('contentLength', 0)),
            title=str(data.get('title', '')),
            links=int(data.get('links', 0)),
        )

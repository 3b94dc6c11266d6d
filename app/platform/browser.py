import logging

from selenium import webdriver
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from webdriver_manager.chrome import ChromeDriverManager

from app.platform.config import settings

logger = logging.getLogger(__name__)


def build_driver(page_load_timeout: int = None) -> webdriver.Chrome:
    """
    Build a headless Chrome session for one crawl/audit.

    Driver resolution order: CHROMEDRIVER_PATH, then webdriver-manager when
    USE_WEBDRIVER_MANAGER is set, then Selenium's own driver lookup.
    Caller is responsible for calling driver.quit().
    """
    chrome_options = Options()
    chrome_options.add_argument('--headless=new')
    chrome_options.add_argument('--no-sandbox')
    chrome_options.add_argument('--disable-dev-shm-usage')
    chrome_options.add_argument(f'--window-size={settings.BROWSER_WINDOW_SIZE}')

    if settings.CHROMEDRIVER_PATH:
        driver_service = Service(executable_path=settings.CHROMEDRIVER_PATH)
        driver = webdriver.Chrome(service=driver_service, options=chrome_options)
    elif settings.USE_WEBDRIVER_MANAGER:
        driver_service = Service(ChromeDriverManager().install())
        driver = webdriver.Chrome(service=driver_service, options=chrome_options)
    else:
        driver = webdriver.Chrome(options=chrome_options)

    driver.set_page_load_timeout(page_load_timeout or settings.PAGE_LOAD_TIMEOUT_SECONDS)
    driver.set_script_timeout(page_load_timeout or settings.PAGE_LOAD_TIMEOUT_SECONDS)
    logger.info("Chrome session started")
    return driver


def is_driver_alive(driver) -> bool:
    """Cheap liveness check; the session may be torn down from another thread."""
    if driver is None or not getattr(driver, "session_id", None):
        return False
    try:
        driver.execute_script("return 1")
        return True
    except Exception:
        return False

"""
Vehicle Listing Scraper - Modal App

Main entry point for the Modal deployment.
Serves the scrape API and exposes the scraper as a remote function.
"""

import modal

# =============================================================================
# MODAL APP SETUP
# =============================================================================

app = modal.App("vehicle-listing-scraper")

# Define the container image with all dependencies, Chromium and local modules
image = (
    modal.Image.debian_slim(python_version="3.11")
    .pip_install("fastapi[standard]", "playwright")
    .run_commands("playwright install --with-deps chromium")
    .add_local_file("constants.py", "/root/constants.py")
    .add_local_file("config.py", "/root/config.py")
    .add_local_file("log.py", "/root/log.py")
    .add_local_file("utils.py", "/root/utils.py")
    .add_local_file("browser.py", "/root/browser.py")
    .add_local_file("scrapers.py", "/root/scrapers.py")
    .add_local_file("rate_limiter.py", "/root/rate_limiter.py")
    .add_local_file("api.py", "/root/api.py")
)

# =============================================================================
# CONFIG
# =============================================================================
# Environment for Settings.from_env() comes from this secret. Create it before
# deploying (every key is optional):
#   modal secret create scraper-config ALLOWED_DOMAINS=auto.ria.com,cars.com RATE_LIMIT_MAX=50

scraper_config = modal.Secret.from_name("scraper-config")

# =============================================================================
# MODAL FUNCTIONS
# =============================================================================


@app.function(
    image=image,
    secrets=[scraper_config],
    timeout=90,
)
async def scrape_listing_fn(url: str, vin: str = "") -> dict:
    """
    Scrape a listing with retry, skipping the HTTP layer.
    Returns the parsed fields or an error as a dictionary.
    """
    import functools

    from browser import render_page
    from config import Settings
    from log import configure_logging
    from scrapers import is_allowed_domain, parse_url, scrape_with_retry, vehicle_to_dict

    settings = Settings.from_env()
    configure_logging(settings.log_level)

    # Check and render the same normalized URL the browser will see
    parsed = parse_url(url)
    target = str(parsed) if parsed is not None else ""
    if not is_allowed_domain(target, settings.allowed_domains):
        return {
            "success": False,
            "error": {"type": "INVALID_URL", "message": "Domain is not allowed"},
        }

    result = await scrape_with_retry(
        target,
        vin or None,
        renderer=functools.partial(
            render_page,
            user_agent=settings.user_agent,
            headless=settings.headless,
        ),
        attempts=settings.scrape_attempts,
        timeout_s=settings.scrape_timeout_s,
    )

    if not result.success:
        return {
            "success": False,
            "error": {
                "type": result.error_type,
                "message": result.error_message,
                "details": result.error_details,
            },
        }

    return {
        "success": True,
        "attempts": result.attempts,
        "data": vehicle_to_dict(result.data),
    }


# =============================================================================
# WEB ENDPOINTS
# =============================================================================


@app.function(
    image=image,
    secrets=[scraper_config],
    timeout=90,
)
@modal.asgi_app()
def web():
    """
    POST /scrape and GET /health, served by the FastAPI app in api.py.
    """
    from api import create_app

    return create_app()


# =============================================================================
# LOCAL TESTING
# =============================================================================


@app.local_entrypoint()
def main(url: str = "", vin: str = ""):
    """
    Local entrypoint for testing.

    Usage:
        modal run app.py --url "https://auto.ria.com/uk/auto_toyota_camry_12345678.html"
    """
    if not url:
        print("Usage: modal run app.py --url <listing URL> [--vin <VIN>]")
        print("\nExample:")
        print('  modal run app.py --url "https://www.cars.com/vehicledetail/12345678/"')
        return

    print(f"Scraping: {url}")
    print("-" * 60)

    result = scrape_listing_fn.remote(url, vin)

    if not result["success"]:
        print(f"Error: {result['error']}")
        return

    data = result["data"]
    print(f"\n{data['brand']} {data['model']} ({data['year']})")
    print(f"Title:          {data['title']}")
    print(f"Engine:         {data['engine_volume']} L")
    print(f"Mileage:        {data['mileage']}")
    print(f"Color:          {data['color']}")
    print(f"Price (USD):    {data['price_usd']}")
    print(f"VIN:            {data['vin']}")
    print(f"Attempts:       {result['attempts']}")

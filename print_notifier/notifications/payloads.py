"""Template context for completion emails.

Every optional job field is replaced by a display default here, so the
templates never see a missing value however sparse the job document is.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Union

from print_notifier.config.models import FormattingConfig
from print_notifier.domain.models import PrintJob, PrintSettings, User

NOT_AVAILABLE = "N/A"
UNTITLED = "Untitled"
ZERO_AMOUNT = "0.00"
ALL_PAGES = "all"


def format_amount(value: Optional[Union[float, int, str]]) -> str:
    """Render a price or payment amount with two decimals.

    Missing or zero values render as "0.00"; strings that are not numbers are
    shown as given.

    Examples:
        >>> format_amount(12.5)
        '12.50'
        >>> format_amount(None)
        '0.00'
    """
    if value is None or value == "":
        return ZERO_AMOUNT
    if isinstance(value, bool):
        return ZERO_AMOUNT
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite():
            return ZERO_AMOUNT
        return f"{amount.quantize(Decimal('0.01')):f}"
    except InvalidOperation:
        return str(value).strip()


def _file_rows(job: PrintJob) -> List[Dict[str, Any]]:
    return [
        {
            "name": print_file.file_name or UNTITLED,
            "page_count": print_file.page_count or 0,
            "price": format_amount(print_file.price),
        }
        for print_file in job.files
    ]


def _settings_context(settings: Optional[PrintSettings], defaults: FormattingConfig) -> Dict[str, Any]:
    settings = settings or PrintSettings()
    copies = settings.copies or 1
    page_range = (settings.page_range or "").strip() or ALL_PAGES

    return {
        "color": settings.color or defaults.default_color,
        "paper_size": settings.paper_size or defaults.default_paper_size,
        "copies": copies,
        "copies_label": "copies" if copies > 1 else "copy",
        "double_sided": bool(settings.double_sided),
        "sides_label": "Double-sided" if settings.double_sided else "Single-sided",
        "orientation": settings.orientation or defaults.default_orientation,
        "page_range": page_range,
        "pages_label": "All pages" if page_range == ALL_PAGES else f"Pages: {page_range}",
    }


def build_completion_context(
    job: PrintJob,
    user: User,
    defaults: Optional[FormattingConfig] = None,
    brand_name: str = "PrintSuit",
    dashboard_url: str = "",
) -> Dict[str, Any]:
    """Build the template context for a job's completion email.

    Args:
        job: Completed print job
        user: Owner of the job
        defaults: Display defaults for missing print settings
        brand_name: Brand shown in the footer
        dashboard_url: Link behind the dashboard button

    Returns:
        Dictionary with keys job_id, order_id, hub_name, amount, currency,
        files, settings, user_name, brand_name, dashboard_url
    """
    defaults = defaults or FormattingConfig()
    payment = job.payment

    return {
        "job_id": job.job_id,
        "order_id": (payment.order_id if payment and payment.order_id else NOT_AVAILABLE),
        "hub_name": job.hub_name or NOT_AVAILABLE,
        "amount": format_amount(payment.amount if payment else None),
        "currency": defaults.currency_symbol,
        "files": _file_rows(job),
        "settings": _settings_context(job.settings, defaults),
        "user_name": user.name or "",
        "brand_name": brand_name,
        "dashboard_url": dashboard_url,
    }

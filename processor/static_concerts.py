"""Bundled concert data used when neither the calendar nor a cache is available."""
from typing import List

from processor.concert_processor import placeholder_image_url
from processor.models import SOURCE_STATIC_FALLBACK, Concert


def _static(concert_id: str, title: str, venue: str, date: str,
            description: str, image_text: str) -> Concert:
    return Concert(
        id=concert_id,
        title=title,
        venue=venue,
        date=date,
        description=description,
        image=placeholder_image_url(image_text),
        is_placeholder=True,
        source=SOURCE_STATIC_FALLBACK,
    )


STATIC_UPCOMING = (
    _static('static-upcoming-1', 'Summer Festival 2025', 'Stockholm Concert Hall',
            'June 15, 2025',
            'Annual summer music festival featuring contemporary Nordic compositions.',
            'Summer Festival'),
)

STATIC_PAST = (
    _static('static-past-1', 'Idol Kvalfinal 2022', 'TV4', '19 September 2022',
            'Performance in the qualification final of Swedish Idol 2022.',
            'Idol Kvalfinal'),
    _static('static-past-2', 'Mejeriet Lund 2024', 'Mejeriet, Lund', '9 Februari 2024',
            "Performance at Mejeriet Lund, one of Sweden's premier live music venues.",
            'Mejeriet Lund'),
    _static('static-past-3', 'Jamboree 2022', 'Jamboree', '7 Augusti 2022',
            'Performance at Jamboree 2022.', 'Jamboree 2022'),
    _static('static-past-4', 'Lundakarnevalen 2022', 'Lund', '22 Maj 2022',
            'Performance at Lundakarnevalen 2022.', 'Lundakarnevalen'),
    _static('static-past-5', 'Torsjö Live 2024', 'Torsjö', '2024',
            'Performance at Torsjö Live 2024, continuing the tradition of this '
            'beloved annual event.', 'Torsjö Live 2024'),
    _static('static-past-6', 'Hässleholmsfestivalen 2022', 'Hässleholm', '2022',
            'Performance at Hässleholmsfestivalen 2022.', 'Hässleholmsfestivalen'),
    _static('static-past-7', 'Lunds Nation NSA 2025', 'Lunds Nation', '30 April 2025',
            'Performance at Lunds Nation NSA event.', 'Lunds Nation NSA'),
    _static('static-past-8', 'Penthouse Lunds Nation Valborg', 'Lunds Nation', 'Valborg 2023',
            'Special Valborg performance at Penthouse, Lunds Nation.', 'Penthouse Valborg'),
    _static('static-past-9', 'Himlakull Kaffe 2025', 'Himlakull', '15 Januari 2025',
            'Intimate performance at Himlakull Kaffe.', 'Himlakull Kaffe'),
)


def static_upcoming_concerts() -> List[Concert]:
    return list(STATIC_UPCOMING)


def static_past_concerts(limit: int = len(STATIC_PAST)) -> List[Concert]:
    return list(STATIC_PAST[:limit])

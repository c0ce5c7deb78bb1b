"""Unit tests for ConcertProcessor."""
from unittest.mock import Mock, patch

import pytest

from calendar_api.drive_images import DriveImageFinder
from processor.concert_processor import ConcertProcessor, placeholder_image_url
from processor.models import ConcertImage


@pytest.fixture
def processor():
    return ConcertProcessor(tag_filter='[CONCERT]', timezone_name='Europe/Stockholm')


class TestIsConcert:
    """Test cases for concert classification."""

    def test_tag_in_title(self, processor, make_event):
        assert processor.is_concert(make_event(title='[CONCERT] Jazz Night'))

    def test_tag_in_description(self, processor, make_event):
        assert processor.is_concert(make_event(title='Jazz Night', description='[concert] at eight'))

    def test_keyword(self, processor, make_event):
        assert processor.is_concert(make_event(title='Vårkonsert'))
        assert processor.is_concert(make_event(title='Jam', description='A piano recital'))

    def test_parenthesized_prefix(self, processor, make_event):
        assert processor.is_concert(make_event(title='(Gig) Jam at Fasching'))

    def test_not_a_concert(self, processor, make_event):
        assert not processor.is_concert(make_event(title='Team Meeting', description='Weekly sync'))

    def test_empty_title(self, processor, make_event):
        assert not processor.is_concert(make_event(title='', description='concert'))

    def test_process_events_filters(self, processor, make_event):
        events = [
            make_event(event_id='a', title='[CONCERT] Show A'),
            make_event(event_id='b', title='Team Meeting'),
            make_event(event_id='c', title='Konsert i parken'),
        ]
        concerts = processor.process_events(events)

        assert [c.id for c in concerts] == ['calendar-a', 'calendar-c']


class TestTitleAndVenue:
    """Test cases for title cleaning and venue extraction."""

    def test_clean_title_keyword_tag_and_time(self, processor):
        assert processor.clean_title('(CONCERT) 19:00 - Summer Show') == 'Summer Show'

    def test_clean_title_configured_tag(self):
        processor = ConcertProcessor(tag_filter='(CONCERT)')
        assert processor.clean_title('(CONCERT) 19:00 - Summer Show') == 'Summer Show'

    def test_clean_title_bracket_tag(self, processor):
        assert processor.clean_title('[CONCERT] Jazz Night') == 'Jazz Night'

    def test_clean_title_only_tag(self, processor):
        assert processor.clean_title('[CONCERT]') == 'Concert'

    def test_venue_from_location(self, processor, make_event):
        event = make_event(title='[CONCERT] Jazz Night', location='Konserthuset, Hötorget 8, Stockholm')
        assert processor.extract_title_and_venue(event) == ('Jazz Night', 'Konserthuset')

    def test_venue_from_title(self, processor, make_event):
        event = make_event(title='[CONCERT] Jazz Night at Fasching', location=None)
        assert processor.extract_title_and_venue(event) == ('Jazz Night', 'Fasching')

    def test_venue_tba(self, processor, make_event):
        event = make_event(title='[CONCERT] Jazz Night', location='  ')
        assert processor.extract_title_and_venue(event) == ('Jazz Night', 'Venue TBA')


class TestDescription:
    """Test cases for description cleaning."""

    def test_strips_html_and_entities(self, processor):
        assert processor.clean_description('<p>Rock &amp;  <b>roll</b></p>') == 'Rock & roll'

    def test_truncates(self, processor):
        cleaned = processor.clean_description('a' * 250)
        assert len(cleaned) == 200
        assert cleaned.endswith('...')

    def test_exact_limit_not_truncated(self, processor):
        assert processor.clean_description('b' * 200) == 'b' * 200

    def test_empty(self, processor):
        assert processor.clean_description(None) == 'Concert details to be announced.'
        assert processor.clean_description('<p> </p>') == 'Concert details to be announced.'


class TestTransformEvent:
    """Test cases for building Concert records."""

    def test_transform_timed_event(self, processor, make_event):
        event = make_event(
            title='(CONCERT) 19:00 - Summer Show',
            location='Konserthuset, Stockholm',
            description='<a href="https://www.eventbrite.com/e/1">Tickets</a>',
        )
        concert = processor.transform_event(event)

        assert concert.id == 'calendar-evt1'
        assert concert.title == 'Summer Show'
        assert concert.venue == 'Konserthuset'
        assert concert.date == '20 juni 2025'
        assert concert.time == '19:00'
        assert concert.duration == '2h 30m'
        assert concert.description == 'Tickets'
        assert concert.links[0].type == 'tickets'
        assert concert.is_placeholder is False
        assert concert.source == 'live-sync'
        assert concert.original_event.id == 'evt1'
        assert concert.original_event.start == '2025-06-20T19:00:00+02:00'

    def test_transform_all_day_event(self, processor, make_event):
        concert = processor.transform_event(make_event(start='2025-06-21', end='2025-06-22'))

        assert concert.date == '21 juni 2025'
        assert concert.time == 'All Day'
        assert concert.duration is None
        assert concert.original_event.is_all_day

    def test_transform_events_skips_failures(self, processor, make_event):
        events = [make_event(event_id='bad'), make_event(event_id='good')]
        with patch.object(processor, 'clean_description', side_effect=[RuntimeError('boom'), 'ok']):
            concerts = processor.transform_events(events)

        assert [c.id for c in concerts] == ['calendar-good']


class TestImages:
    """Test cases for image resolution order."""

    def test_attachment_images_first(self, processor, make_event):
        event = make_event(
            description='<img src="https://cdn.example.com/poster.jpg">',
            attachments=[{'fileUrl': 'https://drive.google.com/file/d/img1/view', 'mimeType': 'image/jpeg'}],
        )
        concert = processor.transform_event(event)

        assert concert.image == 'https://drive.google.com/thumbnail?id=img1&sz=w800'
        assert len(concert.images) == 1
        assert concert.has_images

    def test_description_images(self, processor, make_event):
        concert = processor.transform_event(
            make_event(description='Poster: https://cdn.example.com/poster.png')
        )
        assert concert.image == 'https://cdn.example.com/poster.png'

    def test_drive_finder_last(self, make_event):
        finder = Mock(spec=DriveImageFinder)
        finder.find_images.return_value = [ConcertImage(url='https://lh3.googleusercontent.com/d/f1')]
        processor = ConcertProcessor(image_finder=finder)

        concert = processor.transform_event(make_event(title='[CONCERT] Summer Show'))

        finder.find_images.assert_called_once_with('Summer Show')
        assert concert.image == 'https://lh3.googleusercontent.com/d/f1'

    def test_searched_images_replace_finder_call(self, make_event):
        finder = Mock(spec=DriveImageFinder)
        processor = ConcertProcessor(image_finder=finder)
        searched = {'evt1': [ConcertImage(url='https://lh3.googleusercontent.com/d/f2')]}

        concerts = processor.transform_events([make_event(), make_event(event_id='evt2')], searched)

        finder.find_images.assert_not_called()
        assert concerts[0].image == 'https://lh3.googleusercontent.com/d/f2'
        assert concerts[1].image == placeholder_image_url('Summer Show')

    def test_needs_image_search(self, make_event):
        processor = ConcertProcessor(image_finder=Mock(spec=DriveImageFinder))

        assert processor.needs_image_search(make_event())
        assert not processor.needs_image_search(
            make_event(description='Poster: https://cdn.example.com/poster.png'))
        assert not ConcertProcessor().needs_image_search(make_event())
        assert not ConcertProcessor(image_finder=Mock(spec=DriveImageFinder),
                                    images_enabled=False).needs_image_search(make_event())

    def test_placeholder(self, processor, make_event):
        concert = processor.transform_event(make_event(title='[CONCERT] Summer Show'))

        assert concert.image == placeholder_image_url('Summer Show')
        assert concert.image.startswith('https://via.placeholder.com/400x300')
        assert 'Summer%20Show' in concert.image
        assert concert.images == ()
        assert not concert.has_images

    def test_images_disabled(self, make_event):
        processor = ConcertProcessor(images_enabled=False)
        event = make_event(
            attachments=[{'fileUrl': 'https://drive.google.com/file/d/img1/view', 'mimeType': 'image/jpeg'}],
        )
        concert = processor.transform_event(event)

        assert concert.images == ()
        assert concert.image.startswith('https://via.placeholder.com/')

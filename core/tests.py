"""
Tests for the public website views.
"""
import pytest
from django.http import Http404

from core.views import resolve_site_path


@pytest.fixture
def site_root(tmp_path, settings):
    """A small website on disk, served as SITE_ROOT."""
    (tmp_path / 'index.html').write_text('<h1>Home</h1>\n', encoding='utf-8')
    (tmp_path / 'about.html').write_text('<h1>About us</h1>\n', encoding='utf-8')
    (tmp_path / 'css').mkdir()
    (tmp_path / 'css' / 'style.css').write_text('body { color: red; }\n', encoding='utf-8')
    (tmp_path / 'img').mkdir()
    (tmp_path / 'img' / 'logo.png').write_bytes(b'\x89PNG\r\n\x1a\n\x00\x01\x02\xff')
    (tmp_path / 'blog').mkdir()
    (tmp_path / 'blog' / 'index.html').write_text('<h1>Blog</h1>\n', encoding='utf-8')
    (tmp_path / 'empty').mkdir()

    settings.SITE_ROOT = tmp_path
    return tmp_path


def body(response):
    return b''.join(response.streaming_content)


class TestStaticSite:
    """Test serving files from the website directory."""

    def test_root_serves_index(self, api_client, site_root):
        """Test GET / returns index.html unchanged."""
        response = api_client.get('/')

        assert response.status_code == 200
        assert body(response) == (site_root / 'index.html').read_bytes()
        assert response['Content-Type'].startswith('text/html')

    @pytest.mark.parametrize('path', [
        'about.html',
        'css/style.css',
        'img/logo.png',
    ])
    def test_existing_file_returned_unchanged(self, api_client, site_root, path):
        """Test every existing file is served byte-for-byte."""
        response = api_client.get(f'/{path}')

        assert response.status_code == 200
        assert body(response) == (site_root / path).read_bytes()

    def test_content_type_guessed_from_name(self, api_client, site_root):
        response = api_client.get('/css/style.css')

        assert response['Content-Type'].startswith('text/css')

    @pytest.mark.parametrize('path', ['/blog', '/blog/'])
    def test_directory_serves_its_index(self, api_client, site_root, path):
        """Test a directory path resolves to its index.html."""
        response = api_client.get(path)

        assert response.status_code == 200
        assert body(response) == (site_root / 'blog' / 'index.html').read_bytes()

    def test_head_request(self, api_client, site_root):
        response = api_client.head('/about.html')

        assert response.status_code == 200

    @pytest.mark.parametrize('path', ['/about.html', '/no-such-page'])
    def test_post_to_static_path_not_found(self, api_client, site_root, path):
        """Test only GET and HEAD are routed to the website files."""
        response = api_client.post(path)

        assert response.status_code == 404

    def test_put_to_missing_path_not_found(self, api_client, site_root):
        response = api_client.put('/no-such-page')

        assert response.status_code == 404


class TestNotFound:
    """Test unmatched routes."""

    @pytest.mark.parametrize('path', [
        '/missing.html',
        '/css/missing.css',
        '/no/such/dir/',
        '/empty/',
    ])
    def test_undefined_route_returns_404(self, api_client, site_root, path):
        response = api_client.get(path)

        assert response.status_code == 404

    def test_404_page_rendered(self, api_client, site_root):
        """Test the site's 404 template is used."""
        response = api_client.get('/missing.html')

        assert b'Page not found' in response.content

    def test_path_outside_site_root(self, api_client, site_root):
        (site_root.parent / 'secret.txt').write_text('secret', encoding='utf-8')

        response = api_client.get('/../secret.txt')

        assert response.status_code == 404


class TestResolveSitePath:
    """Test request path to file path mapping."""

    @pytest.mark.parametrize('path, expected', [
        ('', 'index.html'),
        ('/', 'index.html'),
        ('about.html', 'about.html'),
        ('css/./style.css', 'css/style.css'),
        ('blog', 'blog/index.html'),
        ('blog/', 'blog/index.html'),
    ])
    def test_resolves(self, site_root, path, expected):
        assert resolve_site_path(path) == expected

    def test_escape_rejected(self, site_root):
        with pytest.raises(Http404):
            resolve_site_path('../secret.txt')


class TestHealthCheck:

    def test_health(self, api_client, site_root):
        response = api_client.get('/health')

        assert response.status_code == 200
        assert response.json() == {'status': 'ok', 'site_root_exists': True}

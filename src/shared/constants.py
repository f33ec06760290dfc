# --- Географическая схема тайлов (EPSG:4326, два тайла на нулевом уровне)
# Размах широт (градусы), на который делится ряд тайлов
GEOGRAPHIC_LAT_SPAN_DEG = 180.0
# Размах долгот одного тайла нулевого уровня (градусы)
GEOGRAPHIC_LON_SPAN_DEG = 180.0
WORLD_LAT_MAX_DEG = 90.0
WORLD_LNG_HALF_SPAN_DEG = 180.0

# --- Окно уровней данных по умолчанию
# Минимальный уровень, для которого строится диапазон тайлов
DEFAULT_MINIMUM_LEVEL = 1
# Максимальный уровень, для которого строится диапазон тайлов
DEFAULT_MAXIMUM_LEVEL = 19
# Ниже этого уровня (по самому детальному видимому тайлу) данные не рендерятся
DEFAULT_LOWER_LEVEL_LIMIT = 1

# Максимальный разброс уровней видимых тайлов в одном проходе
MAX_LEVEL_SPREAD = 2

# Количество дочерних тайлов по одной оси при разбиении
SPLIT_FACTOR = 2

# --- Свойства объектов GeoJSON
# Свойство-идентификатор объекта (используется для реестра высот)
DEFAULT_ID_PROPERTY = 'house_id'
# Свойство высоты объекта над рельефом (метры)
DEFAULT_HEIGHT_PROPERTY = 'height'
# Поддерживаемые типы геометрии
GEOMETRY_POLYGON = 'Polygon'
GEOMETRY_MULTIPOLYGON = 'MultiPolygon'
# Минимальное число точек в кольце полигона
MIN_POINTS_FOR_RING = 3

# --- Параметры сетевых запросов по умолчанию
# Максимальное число параллельных HTTP-запросов тайлов
DOWNLOAD_CONCURRENCY = 8
HTTP_TIMEOUT_DEFAULT = 30.0
HTTP_OK = 200
# Заголовок Accept для запросов тайлов
HTTP_ACCEPT_GEOJSON = 'application/geo+json, application/json;q=0.9, */*;q=0.1'

# Плейсхолдеры шаблона URL тайла
URL_PLACEHOLDER_X = '{x}'
URL_PLACEHOLDER_Y = '{y}'
URL_PLACEHOLDER_Z = '{z}'
# Символы, которые encodeURIComponent не экранирует
URI_COMPONENT_SAFE = "-_.!~*'()"

# --- Опции кэша HTTP
HTTP_CACHE_ENABLED = True
# Каталог кэша (относительные пути считаются от домашнего каталога пользователя)
HTTP_CACHE_DIR = '.geojson_tiles_cache/http'
HTTP_CACHE_FILE_NAME = 'geojson_tiles.sqlite'
# Время жизни (TTL) в часах
HTTP_CACHE_EXPIRE_HOURS = 24
# Учитывать заголовки Cache-Control/ETag/Last-Modified
HTTP_CACHE_RESPECT_HEADERS = True
# Разрешить использовать устаревший кэш при сетевых ошибках (часы), 0 запрещает
HTTP_CACHE_STALE_IF_ERROR_HOURS = 0

# --- Профили
PROFILES_DIR = 'configs/profiles'
APP_DIR_NAME = 'GeoJSONTiles'
LOG_FILE_NAME = 'geojson_tiles.log'

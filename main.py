from flask import Flask, jsonify, request
from flask_cors import CORS

from fingerprinter.audio_utils import AudioProcessor
from fingerprinter.config import AppConfig
from fingerprinter.database import (
    SQLiteDatabase,
    SQLiteFingerprintRepository,
    SQLiteSongRepository,
)
from fingerprinter.errors import (
    DecodeError,
    RepositoryError,
    StageError,
    StorageError,
    ValidationError,
)
from fingerprinter.fingerprint import FingerprintGenerator
from fingerprinter.logging_config import set_level, setup_logger
from fingerprinter.models import IdentifyStatus
from fingerprinter.music_service import MusicService
from fingerprinter.storage import LocalStorage

logger = setup_logger(__name__)


def build_music_service(config):
    database = SQLiteDatabase(config.database.db_path)
    return MusicService(
        storage=LocalStorage(config.database.storage_path),
        song_repo=SQLiteSongRepository(database),
        fingerprint_repo=SQLiteFingerprintRepository(database),
        audio_processor=AudioProcessor(config.audio),
        fingerprint_generator=FingerprintGenerator(config.hashing),
        storage_prefix=config.database.storage_prefix,
    )


def _read_upload():
    if "file" not in request.files:
        raise ValidationError("no file")
    return request.files["file"].read()


def create_app(config=None, music_service=None):
    config = config or AppConfig.from_env()
    music_service = music_service or build_music_service(config)

    app = Flask(__name__)
    CORS(app)

    # multipart overhead on top of the audio size ceiling
    app.config["MAX_CONTENT_LENGTH"] = config.audio.max_file_size + 64 * 1024

    @app.errorhandler(ValidationError)
    @app.errorhandler(DecodeError)
    @app.errorhandler(RepositoryError)
    def handle_bad_request(e):
        logger.warning(f"Rejected request: {e}")
        return jsonify({"success": False, "message": str(e)}), 400

    @app.errorhandler(StageError)
    @app.errorhandler(StorageError)
    def handle_processing_error(e):
        logger.error(f"Processing error: {e}")
        return jsonify({"success": False, "message": str(e)}), 500

    @app.errorhandler(413)
    def handle_too_large(e):
        return jsonify({"success": False, "message": "file is too large"}), 413

    @app.route("/health")
    def health():
        return jsonify({"status": "healthy"})

    @app.route("/api/upload", methods=["POST"])
    def api_upload():
        audio_bytes = _read_upload()
        logger.info(f"Audio file received ({len(audio_bytes)} bytes)")

        metadata = music_service.audio_processor.read_wav_properties(audio_bytes)
        return jsonify({"success": True, "metadata": metadata.to_dict()})

    @app.route("/api/songs", methods=["POST"])
    def api_add_song():
        audio_bytes = _read_upload()
        file = request.files["file"]

        year = request.form.get("year")
        try:
            year = int(year) if year else None
        except ValueError:
            raise ValidationError(f"invalid year: {year}") from None

        result = music_service.handle_upload(
            audio_bytes,
            title=request.form.get("title") or file.filename,
            artist=request.form.get("artist", "Unknown"),
            album=request.form.get("album", ""),
            year=year,
        )
        return jsonify(
            {
                "success": True,
                "song": result.song.to_dict(),
                "metadata": result.metadata.to_dict(),
                "num_fingerprints": result.num_fingerprints,
            }
        ), 201

    @app.route("/api/songs/<song_id>")
    def api_get_song(song_id):
        song = music_service.get_song(song_id)
        if song is None:
            return jsonify({"success": False, "message": "Song not found"}), 404
        return jsonify({"success": True, "song": song.to_dict()})

    @app.route("/api/fingerprints/<int:hash_val>")
    def api_get_fingerprint(hash_val):
        fingerprint = music_service.get_fingerprint(hash_val)
        if fingerprint is None:
            return jsonify({"success": False, "message": "Fingerprint not found"}), 404
        return jsonify({"success": True, "fingerprint": fingerprint.to_dict()})

    @app.route("/api/identify", methods=["POST"])
    def api_identify():
        data = request.get_json(silent=True) or {}
        if "hash" not in data:
            raise ValidationError("no hash")
        try:
            hash_val = int(data["hash"])
        except (TypeError, ValueError):
            raise ValidationError(f"invalid hash: {data['hash']}") from None

        result = music_service.identify(hash_val)
        status = 501 if result.status == IdentifyStatus.NOT_IMPLEMENTED else 404
        return jsonify(
            {"success": False, "status": result.status.value, "message": result.message}
        ), status

    return app


def main():
    config = AppConfig.from_env()
    set_level(config.log_level)
    set_level(config.log_level, __name__)
    app = create_app(config)

    logger.info(f"🌐 Starting web server at http://localhost:{config.port}")
    app.run(host="0.0.0.0", port=config.port, debug=config.debug)


if __name__ == "__main__":
    main()

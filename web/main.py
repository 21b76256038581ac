from __future__ import annotations
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.templating import Jinja2Templates

from image_ops.config import LOG_LEVEL, FORMATS, POSITIONS, DEFAULT_POSITION
from image_ops.errors import ToolNotFound, ProcessingFailed, StagingFailed
from image_ops.logging_setup import configure_logging
from image_ops.options import (
    ResizeOptions, CropOptions, ConvertOptions, CompressOptions, WatermarkOptions,
)
from image_ops.processor import ImageProcessor, create_processor, mime_type

make_logger = configure_logging(level=LOG_LEVEL, to_stderr=True, to_journal=True)
log = make_logger("web")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # tests set app.state.processor before the app starts
    if getattr(app.state, "processor", None) is None:
        try:
            app.state.processor = create_processor()
        except ToolNotFound as e:
            log.error("%s", e)
            app.state.processor = None
    yield


app = FastAPI(title="Image Operations", docs_url=None, redoc_url=None, lifespan=lifespan)

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


def get_processor(request: Request) -> ImageProcessor:
    processor = getattr(request.app.state, "processor", None)
    if processor is None:
        # startup could not find the tool; probe again so the client gets the hint
        processor = create_processor()
        request.app.state.processor = processor
    return processor


@app.exception_handler(ValueError)
async def bad_options(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(ProcessingFailed)
async def processing_failed(request: Request, exc: ProcessingFailed):
    return JSONResponse(status_code=422, content={"error": str(exc), "stderr": exc.stderr})


@app.exception_handler(ToolNotFound)
async def tool_not_found(request: Request, exc: ToolNotFound):
    return JSONResponse(status_code=503, content={"error": str(exc), "hint": exc.hint})


@app.exception_handler(StagingFailed)
async def staging_failed(request: Request, exc: StagingFailed):
    log.error("staging failed: %s", exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.get("/", response_class=HTMLResponse)
async def read_root(request: Request):
    return templates.TemplateResponse(request, "index.html", {
        "formats": FORMATS,
        "positions": list(POSITIONS),
    })


# Handlers are plain `def`: FastAPI runs them in its threadpool, which keeps
# the blocking tool invocation off the event loop.


def _image_response(request: Request, operation: str, source: bytes, data: bytes, media_type: str) -> Response:
    client = request.client.host if request.client else "-"
    make_logger("web", {"operation": operation, "client": client}).info(
        "%d bytes in, %d bytes out (%s)", len(source), len(data), media_type)
    return Response(content=data, media_type=media_type)


@app.post("/api/resize")
def api_resize(request: Request, file: UploadFile = File(...),
               width: Optional[int] = Form(None), height: Optional[int] = Form(None),
               fit: str = Form("fill"), quality: Optional[int] = Form(None)):
    opts = ResizeOptions(width=width, height=height, fit=fit, quality=quality)
    src = file.file.read()
    data = get_processor(request).resize(src, opts)
    return _image_response(request, "resize", src, data, "image/png")


@app.post("/api/crop")
def api_crop(request: Request, file: UploadFile = File(...),
             x: int = Form(...), y: int = Form(...), width: int = Form(...), height: int = Form(...)):
    opts = CropOptions(x=x, y=y, width=width, height=height)
    src = file.file.read()
    data = get_processor(request).crop(src, opts)
    return _image_response(request, "crop", src, data, "image/png")


@app.post("/api/convert")
def api_convert(request: Request, file: UploadFile = File(...),
                format: str = Form(...), quality: Optional[int] = Form(None)):
    opts = ConvertOptions(format=format, quality=quality)
    src = file.file.read()
    data = get_processor(request).convert(src, opts)
    return _image_response(request, "convert", src, data, mime_type(opts.format))


@app.post("/api/compress")
def api_compress(request: Request, file: UploadFile = File(...),
                 format: Optional[str] = Form(None), quality: Optional[int] = Form(None)):
    opts = CompressOptions(format=format or None, quality=quality)
    src = file.file.read()
    data = get_processor(request).compress(src, opts)
    return _image_response(request, "compress", src, data, mime_type(opts.resolved().format))


@app.post("/api/watermark")
def api_watermark(request: Request, file: UploadFile = File(...),
                  type: str = Form(...), text: Optional[str] = Form(None),
                  watermark: Optional[UploadFile] = File(None),
                  position: str = Form(DEFAULT_POSITION), font_size: Optional[int] = Form(None),
                  color: Optional[str] = Form(None), opacity: float = Form(1.0)):
    opts = WatermarkOptions(
        type=type, text=text,
        image=watermark.file.read() if watermark is not None else None,
        position=position, font_size=font_size, color=color, opacity=opacity,
    )
    src = file.file.read()
    data = get_processor(request).add_watermark(src, opts)
    return _image_response(request, "watermark", src, data, "image/png")


@app.post("/api/info")
def api_info(request: Request, file: UploadFile = File(...)):
    return get_processor(request).extract_info(file.file.read()).as_dict()

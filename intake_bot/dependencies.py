from fastapi import Request

from intake_bot.pipeline import IntakePipeline


def get_pipeline(request: Request) -> IntakePipeline:
    return request.app.state.pipeline

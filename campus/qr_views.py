from io import BytesIO

from django.contrib.auth.decorators import login_required
from django.http import Http404, HttpResponse

import qrcode
from qrcode.image.pil import PilImage

from academics.models import Student
from academics.permissions import scoped


BOX_SIZES = {'s': 4, 'm': 8, 'l': 12}


def render_qr_png(value: str, box_size: int = 8) -> bytes:
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=2,
    )
    qr.add_data(value)
    qr.make(fit=True)
    img = qr.make_image(image_factory=PilImage, fill_color="black", back_color="white")
    out = BytesIO()
    img.save(out, format="PNG")
    return out.getvalue()


@login_required
def student_qr(request, pk: int):
    student = scoped(Student.objects.all(), request.user, 'student').filter(pk=pk).first()
    if student is None:
        raise Http404("Student not found")
    box = BOX_SIZES.get(request.GET.get('size', 'm'), BOX_SIZES['m'])
    resp = HttpResponse(render_qr_png(student.qr_code, box), content_type="image/png")
    resp["Cache-Control"] = "private, max-age=86400"
    return resp

from __future__ import annotations

from kbeauty_agent.models import MAX_PRODUCTS, DeliveryOption, Language, ProductSchema, SkinType, UserPreferences

OLIVE_YOUNG_SEARCH_URL = "https://www.oliveyoung.co.kr/store/search/getSearchMain.do"
_OLIVE_YOUNG_EXAMPLE_QUERY = "구달+청귤+비타+C+잡티+케어+세럼"

_SKIN_TYPE_KO = {
    SkinType.DRY: "건성",
    SkinType.OILY: "지성",
    SkinType.COMBINATION: "복합성",
    SkinType.SENSITIVE: "민감성",
}

_DELIVERY_KO = {
    DeliveryOption.ONLINE: "온라인 배송",
    DeliveryOption.IN_STORE: "매장 픽업",
}


def _properties_en(schema: ProductSchema) -> str:
    parts = [
        '"productName" (in English)',
        '"brand" (in English)',
        '"price" (as a number)',
    ]
    if schema is ProductSchema.WITH_IMAGE:
        parts.append('"imageUrl" (a direct, working link to the product image)')
    parts.append('"productUrl" (formatted as described above)')
    parts.append('"explanation" (in English)')
    return ", ".join(parts)


def _properties_ko(schema: ProductSchema) -> str:
    parts = [
        '"productName" (한글)',
        '"brand" (한글)',
        '"price" (숫자)',
    ]
    if schema is ProductSchema.WITH_IMAGE:
        parts.append('"imageUrl" (제품 이미지의 실제 링크)')
    parts.append('"productUrl" (위에서 설명한 형식)')
    parts.append('"explanation" (한글)')
    return ", ".join(parts)


def build_system_instruction(
    preferences: UserPreferences,
    prompt_text: str,
    language: Language = "en",
    schema: ProductSchema = ProductSchema.BASE,
) -> str:
    """Render the instruction sent alongside the user turn.

    The profile values and the request text are embedded verbatim so the
    model sees exactly what the shopper entered.
    """
    skin_type = preferences.skin_type
    delivery = preferences.delivery

    if language == "ko":
        return (
            "당신은 JSON API 엔드포인트입니다. 전문 K-뷰티 퍼스널 쇼퍼 역할을 하여 단일 JSON 배열만 반환합니다.\n"
            f"제공된 Google 검색 도구를 사용하여 사용자 프로필과 요청에 맞는 스킨케어 제품을 올리브영에서 최대 {MAX_PRODUCTS}개 찾으세요.\n\n"
            "URL 규칙:\n"
            f'"productUrl"은 반드시 올리브영 검색 링크({OLIVE_YOUNG_SEARCH_URL})여야 하며, '
            "검색어는 공식 브랜드명과 제품명을 한글로 사용하고 URL 인코딩해야 합니다.\n"
            f'예: "{OLIVE_YOUNG_SEARCH_URL}?query={_OLIVE_YOUNG_EXAMPLE_QUERY}"\n\n'
            "사용자 프로필:\n"
            f"- 피부 타입: {_SKIN_TYPE_KO[skin_type]} ({skin_type.value})\n"
            f"- 나이: {preferences.age}\n"
            f"- 최대 예산: {preferences.budget} 원\n"
            f"- 선호 배송 방법: {_DELIVERY_KO[delivery]} ({delivery.value})\n\n"
            f'사용자의 상세 요청: "{prompt_text}"\n\n'
            "각 제품이 왜 좋은 선택인지 간결하고 개인화된 설명을 한국어로 제공하세요. 검색 결과 자체는 응답에 포함하지 마세요.\n"
            "전체 응답은 객체로 이루어진 단일하고 유효한 JSON 배열이어야 하며, 다른 텍스트나 마크다운을 포함하지 마십시오.\n"
            f"각 객체는 다음 속성을 가져야 합니다: {_properties_ko(schema)}."
        )

    return (
        "You are a JSON API endpoint. Act as an expert K-Beauty personal shopper and return a single JSON array.\n"
        f"Use the provided Google Search tool to find up to {MAX_PRODUCTS} skincare products from Olive Young "
        "that match the user's profile and request.\n\n"
        "Product URL rule:\n"
        f'"productUrl" MUST be a search link on the Korean Olive Young website ({OLIVE_YOUNG_SEARCH_URL}). '
        "The search query MUST use the official brand and product name in Korean (Hangul), URL-encoded, "
        "even though the rest of the response is in English.\n"
        f'Example: "{OLIVE_YOUNG_SEARCH_URL}?query={_OLIVE_YOUNG_EXAMPLE_QUERY}"\n\n'
        "User Profile:\n"
        f"- Skin Type: {skin_type.value}\n"
        f"- Age: {preferences.age}\n"
        f"- Maximum Budget: {preferences.budget} KRW\n"
        f"- Preferred Delivery: {delivery.value}\n\n"
        f'User\'s Detailed Request: "{prompt_text}"\n\n'
        "For each product, give a concise, personalized explanation in English of why it is a good fit. "
        "Do not include the raw search results in your response.\n"
        "Your entire response MUST be a single, valid JSON array of objects with no other text, commentary, or markdown.\n"
        f"Each object must have the following properties: {_properties_en(schema)}."
    )


def build_user_instruction(language: Language = "en") -> str:
    if language == "ko":
        return (
            f"시스템 지침에 제공된 사용자 프로필과 요청을 기반으로 상위 {MAX_PRODUCTS}개의 K-뷰티 제품을 찾아주세요. "
            "JSON 배열만으로 응답해주세요."
        )
    return (
        f"Find the top {MAX_PRODUCTS} k-beauty products based on the user profile and request provided "
        "in the system instruction. Respond with only the JSON array."
    )


def build_image_prompt(product_name: str, brand: str) -> str:
    return (
        f"A photorealistic product photograph of a Korean skincare product: '{product_name}' "
        f"from the brand '{brand}'. The product is on a clean, minimalist, brightly lit studio background. "
        "The packaging, logos, and text are sharp and accurate to the real product."
    )
